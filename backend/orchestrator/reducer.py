"""
Pure terminal session reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from orchestrator.commands import (
    AppendLog,
    ClearLog,
    CloseTransport,
    Command,
    DeleteLast,
    LogEvent,
    OpenTransport,
    ReportInvalidTransition,
    SetAvailability,
    SetDictation,
    SetDraft,
    ShowNotice,
    WriteTransport,
)
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    AutoSubmitChanged,
    BytesReceived,
    ClearRequested,
    ConnectRequested,
    DictationError,
    DictationFinal,
    DictationPartial,
    DictationToggled,
    DisconnectRequested,
    DraftChanged,
    EncodingModeChanged,
    Event,
    NewlineModeChanged,
    SendRequested,
    TransportConnectError,
    TransportConnected,
    TransportEvent,
    TransportIoError,
)
from orchestrator.state_dataclass import TerminalState
from protocol.codec import DecodeState, InvalidHexInput, decode_batch, encode
from render.line_renderer import RenderTag
from session import connection_state
from session.connection_state import InvalidTransition, NotConnected
from spec import (
    LOG_LINE_BREAK,
    NOTICE_INVALID_HEX,
    NOTICE_NOT_CONNECTED,
    STATUS_CONNECT_FAILED,
    STATUS_CONNECTED,
    STATUS_CONNECTING,
    STATUS_CONNECTION_LOST,
    STATUS_DICTATION_ERROR,
    STATUS_DICTATION_LISTENING,
    STATUS_DICTATION_READY,
    STATUS_DICTATION_RECOGNIZED,
    STATUS_DICTATION_STOPPED,
    STATUS_DICTATION_WAIT,
)

Result = tuple[TerminalState, tuple[Command, ...]]


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: TerminalState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "connection": state.connection.value,
            "epoch": state.epoch,
            "encoding": state.encoding.value,
            "newline": state.newline.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: TerminalState, event: Event, reason: str) -> Result:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _status(text: str) -> AppendLog:
    return AppendLog(text=text + LOG_LINE_BREAK, tag=RenderTag.STATUS)


def _state_changed(
    old: TerminalState,
    new: TerminalState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.connection.value,
            "to_state": new.connection.value,
            "source": source,
        },
    )


def _invalid_transition(
    state: TerminalState, event: Event, error: InvalidTransition
) -> Result:
    # Report last: in strict mode it raises and skips whatever follows it
    return state, (
        _log(state, event, "invalid_transition", {"action": error.action}),
        ReportInvalidTransition(from_state=error.current.value, action=error.action),
    )


def _is_stale(state: TerminalState, event: TransportEvent) -> bool:
    return event.epoch != state.epoch


def _drop_connection(
    state: TerminalState,
    event: Event,
    *,
    status: str | None,
    last_error: str | None,
    source: str,
) -> Result:
    """
    Common exit path into DISCONNECTED.

    Bumps the epoch so any in-flight result of the old link is stale,
    closes the transport, and stops dictation.
    """
    new_state = replace(
        state,
        connection=connection_state.disconnect(state.connection),
        epoch=state.epoch + 1,
        last_error=last_error,
        dictation_active=False,
        decode=DecodeState(),
    )

    cmds: list[Command] = []
    if status is not None:
        cmds.append(_status(status))
    cmds.append(CloseTransport())
    cmds.append(SetAvailability(can_send=False))
    if state.dictation_active:
        cmds.append(SetDictation(active=False))
    cmds.append(_state_changed(state, new_state, event, source))

    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Connection lifecycle
# =============================================================================

def _on_connect_requested(state: TerminalState, event: ConnectRequested) -> Result:
    try:
        next_connection = connection_state.begin_connect(state.connection)
    except InvalidTransition as e:
        return _invalid_transition(state, event, e)

    new_state = replace(
        state,
        connection=next_connection,
        epoch=state.epoch + 1,
        identity=event.identity,
        last_error=None,
        decode=DecodeState(),
    )

    return new_state, _logs_last((
        _status(STATUS_CONNECTING),
        SetAvailability(can_send=False),
        OpenTransport(epoch=new_state.epoch, identity=event.identity),
        _state_changed(state, new_state, event, "connect_requested"),
    ))


def _on_transport_connected(state: TerminalState, event: TransportConnected) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "stale_epoch")

    try:
        next_connection = connection_state.on_connected(state.connection)
    except InvalidTransition:
        return _ignore(state, event, "not_connecting")

    new_state = replace(state, connection=next_connection)

    return new_state, _logs_last((
        _status(STATUS_CONNECTED),
        SetAvailability(can_send=True),
        _state_changed(state, new_state, event, "transport_connected"),
    ))


def _on_transport_connect_error(
    state: TerminalState, event: TransportConnectError
) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "stale_epoch")

    try:
        connection_state.on_connect_error(state.connection)
    except InvalidTransition:
        return _ignore(state, event, "not_connecting")

    return _drop_connection(
        state,
        event,
        status=STATUS_CONNECT_FAILED.format(reason=event.reason),
        last_error=event.reason,
        source="connect_error",
    )


def _on_transport_io_error(state: TerminalState, event: TransportIoError) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "stale_epoch")

    try:
        connection_state.on_io_error(state.connection)
    except InvalidTransition:
        return _ignore(state, event, "not_connected")

    return _drop_connection(
        state,
        event,
        status=STATUS_CONNECTION_LOST.format(reason=event.reason),
        last_error=event.reason,
        source="io_error",
    )


def _on_disconnect_requested(
    state: TerminalState, event: DisconnectRequested
) -> Result:
    if state.connection is ConnectionState.DISCONNECTED:
        # close() is idempotent; issue it anyway so a half-open transport is released
        return state, (
            CloseTransport(),
            _log(state, event, "disconnect_noop"),
        )

    return _drop_connection(
        state,
        event,
        status=None,
        last_error=None,
        source="disconnect_requested",
    )


# =============================================================================
# Inbound bytes
# =============================================================================

def _on_bytes_received(state: TerminalState, event: BytesReceived) -> Result:
    if _is_stale(state, event):
        return _ignore(state, event, "stale_epoch")

    if state.connection is not ConnectionState.CONNECTED:
        return _ignore(state, event, "not_connected")

    result = decode_batch(
        event.chunks,
        encoding=state.encoding,
        newline=state.newline,
        state=state.decode,
    )
    new_state = replace(state, decode=result.state)

    cmds: list[Command] = []
    if result.retract:
        cmds.append(DeleteLast(count=result.retract))
    if result.text:
        cmds.append(AppendLog(text=result.text, tag=RenderTag.RECEIVED))
    cmds.append(
        _log(
            new_state,
            event,
            "bytes_rendered",
            {
                "chunks": len(event.chunks),
                "bytes": sum(len(c) for c in event.chunks),
                "retract": result.retract,
                "pending_newline": result.state.pending_newline,
            },
        )
    )

    return new_state, tuple(cmds)


# =============================================================================
# Outbound
# =============================================================================

def _send(state: TerminalState, event: Event, text: str) -> Result:
    """
    Shared send path for user submissions and auto-submitted dictation.

    Rejections leave state and the log untouched and surface as notices.
    """
    try:
        connection_state.require_connected(state.connection)
        sent = encode(text, encoding=state.encoding, newline=state.newline)
    except NotConnected:
        return state, (
            ShowNotice(text=NOTICE_NOT_CONNECTED),
            _log(state, event, "send_rejected", {"reason": "not_connected"}),
        )
    except InvalidHexInput as e:
        return state, (
            ShowNotice(text=NOTICE_INVALID_HEX.format(detail=e)),
            _log(state, event, "send_rejected", {"reason": "invalid_hex", "error": str(e)}),
        )

    return state, (
        AppendLog(text=sent.echo, tag=RenderTag.SENT),
        WriteTransport(epoch=state.epoch, data=sent.wire),
        _log(state, event, "send", {"bytes": len(sent.wire)}),
    )


# =============================================================================
# Dictation
# =============================================================================

def _on_dictation_toggled(state: TerminalState, event: DictationToggled) -> Result:
    if state.connection is ConnectionState.CONNECTING:
        return state, (
            _status(STATUS_DICTATION_WAIT),
            _log(state, event, "dictation_rejected", {"reason": "connecting"}),
        )

    if state.connection is ConnectionState.DISCONNECTED:
        return state, (
            ShowNotice(text=NOTICE_NOT_CONNECTED),
            _log(state, event, "dictation_rejected", {"reason": "not_connected"}),
        )

    active = not state.dictation_active
    new_state = replace(state, dictation_active=active)

    return new_state, (
        SetDictation(active=active),
        _status(STATUS_DICTATION_LISTENING if active else STATUS_DICTATION_STOPPED),
        _log(new_state, event, "dictation_toggled", {"active": active}),
    )


def _on_dictation_final(state: TerminalState, event: DictationFinal) -> Result:
    new_state = replace(state, dictation_active=False, draft=event.text)

    cmds: list[Command] = []
    if state.dictation_active:
        cmds.append(SetDictation(active=False))
    cmds.append(_status(STATUS_DICTATION_RECOGNIZED.format(text=event.text)))
    cmds.append(SetDraft(text=event.text))

    if new_state.auto_submit_dictation:
        new_state, send_cmds = _send(new_state, event, event.text)
        cmds.extend(send_cmds)
    else:
        cmds.append(_status(STATUS_DICTATION_READY))
        cmds.append(_log(new_state, event, "dictation_staged"))

    return new_state, tuple(cmds)


def _on_dictation_error(state: TerminalState, event: DictationError) -> Result:
    new_state = replace(state, dictation_active=False)

    cmds: list[Command] = []
    if state.dictation_active:
        cmds.append(SetDictation(active=False))

    # Errors while not connected would bury connection status lines
    if state.connection is not ConnectionState.CONNECTED:
        cmds.append(_log(new_state, event, "ignore", {"reason": "not_connected"}))
        return new_state, tuple(cmds)

    cmds.append(_status(STATUS_DICTATION_ERROR.format(reason=event.reason)))
    cmds.append(_log(new_state, event, "dictation_error", {"reason": event.reason}))
    return new_state, tuple(cmds)


# =============================================================================
# Reducer
# =============================================================================

def reduce(state: TerminalState, event: Event) -> Result:
    """
    Pure reducer for the terminal session.

    Given the current state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Epoch-safe: ignores transport results from superseded connections
    - Splice-safe: a pending CR is forgotten once anything else touches the log
    """
    new_state, commands = _reduce(state, event)

    if new_state.decode.pending_newline and any(_ends_received_run(c) for c in commands):
        new_state = replace(
            new_state, decode=replace(new_state.decode, pending_newline=False)
        )

    return new_state, commands


def _ends_received_run(cmd: Command) -> bool:
    # The last log characters are no longer the "^M" of a received CR
    if isinstance(cmd, ClearLog):
        return True
    return isinstance(cmd, AppendLog) and cmd.tag is not RenderTag.RECEIVED


def _reduce(state: TerminalState, event: Event) -> Result:
    if isinstance(event, ConnectRequested):
        return _on_connect_requested(state, event)

    if isinstance(event, TransportConnected):
        return _on_transport_connected(state, event)

    if isinstance(event, TransportConnectError):
        return _on_transport_connect_error(state, event)

    if isinstance(event, TransportIoError):
        return _on_transport_io_error(state, event)

    if isinstance(event, DisconnectRequested):
        return _on_disconnect_requested(state, event)

    if isinstance(event, BytesReceived):
        return _on_bytes_received(state, event)

    if isinstance(event, SendRequested):
        return _send(state, event, event.text)

    if isinstance(event, DraftChanged):
        return replace(state, draft=event.text), ()

    if isinstance(event, ClearRequested):
        return state, (ClearLog(), _log(state, event, "log_cleared"))

    if isinstance(event, EncodingModeChanged):
        if event.mode is state.encoding:
            return _ignore(state, event, "unchanged")
        # Switching modes always discards the draft
        new_state = replace(state, encoding=event.mode, draft="", decode=DecodeState())
        return new_state, (
            SetDraft(text=""),
            _log(new_state, event, "encoding_changed", {"mode": event.mode.value}),
        )

    if isinstance(event, NewlineModeChanged):
        new_state = replace(state, newline=event.mode)
        return new_state, (
            _log(new_state, event, "newline_changed", {"mode": event.mode.value}),
        )

    if isinstance(event, AutoSubmitChanged):
        new_state = replace(state, auto_submit_dictation=event.enabled)
        return new_state, (
            _log(new_state, event, "auto_submit_changed", {"enabled": event.enabled}),
        )

    if isinstance(event, DictationToggled):
        return _on_dictation_toggled(state, event)

    if isinstance(event, DictationPartial):
        return replace(state, draft=event.text), (SetDraft(text=event.text),)

    if isinstance(event, DictationFinal):
        return _on_dictation_final(state, event)

    if isinstance(event, DictationError):
        return _on_dictation_error(state, event)

    return _ignore(state, event, "unhandled_event")
