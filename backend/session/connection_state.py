"""
Connection state machine.

    DISCONNECTED --begin_connect-->    CONNECTING
    CONNECTING   --on_connected-->     CONNECTED
    CONNECTING   --on_connect_error--> DISCONNECTED
    CONNECTED    --on_io_error-->      DISCONNECTED
    any          --disconnect-->       DISCONNECTED

Every function is pure: it takes the current state and returns the next one,
or raises InvalidTransition without side effects. Status lines, transport
close() and the availability signal are decided by the reducer.
"""

from __future__ import annotations

from orchestrator.enums.state import ConnectionState


class ConnectionStateError(Exception):
    """Base class for connection state errors."""


class InvalidTransition(ConnectionStateError):
    """
    Raised when an event is not legal in the current state.

    Indicates a caller ordering bug (e.g. connecting twice). The session
    treats it as a no-op unless strict transitions are enabled.
    """

    def __init__(self, current: ConnectionState, action: str) -> None:
        super().__init__(f"{action} not allowed in state {current.value}")
        self.current = current
        self.action = action


class NotConnected(ConnectionStateError):
    """Raised when a send or dictation is attempted outside CONNECTED."""


def begin_connect(current: ConnectionState) -> ConnectionState:
    if current is not ConnectionState.DISCONNECTED:
        raise InvalidTransition(current, "begin_connect")
    return ConnectionState.CONNECTING


def on_connected(current: ConnectionState) -> ConnectionState:
    if current is not ConnectionState.CONNECTING:
        raise InvalidTransition(current, "on_connected")
    return ConnectionState.CONNECTED


def on_connect_error(current: ConnectionState) -> ConnectionState:
    if current is not ConnectionState.CONNECTING:
        raise InvalidTransition(current, "on_connect_error")
    return ConnectionState.DISCONNECTED


def on_io_error(current: ConnectionState) -> ConnectionState:
    if current is not ConnectionState.CONNECTED:
        raise InvalidTransition(current, "on_io_error")
    return ConnectionState.DISCONNECTED


def disconnect(current: ConnectionState) -> ConnectionState:  # pylint: disable=unused-argument
    """Legal from every state, including DISCONNECTED (idempotent)."""
    return ConnectionState.DISCONNECTED


def can_send(current: ConnectionState) -> bool:
    """UI-availability signal: sends and dictation are allowed only when connected."""
    return current is ConnectionState.CONNECTED


def require_connected(current: ConnectionState) -> None:
    if not can_send(current):
        raise NotConnected(f"state is {current.value}")
