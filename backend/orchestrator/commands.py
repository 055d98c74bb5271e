"""
Side-effect command definitions for the terminal session.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from render.line_renderer import RenderTag

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging, replay,
    and runtime dispatch.
    """

    # Render log
    APPEND_LOG = "APPEND_LOG"
    DELETE_LAST = "DELETE_LAST"
    CLEAR_LOG = "CLEAR_LOG"

    # Transport
    OPEN_TRANSPORT = "OPEN_TRANSPORT"
    WRITE_TRANSPORT = "WRITE_TRANSPORT"
    CLOSE_TRANSPORT = "CLOSE_TRANSPORT"

    # UI signals
    SHOW_NOTICE = "SHOW_NOTICE"
    SET_AVAILABILITY = "SET_AVAILABILITY"
    SET_DRAFT = "SET_DRAFT"
    SET_DICTATION = "SET_DICTATION"

    # Diagnostics
    REPORT_INVALID_TRANSITION = "REPORT_INVALID_TRANSITION"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Render Commands
# =============================================================================

@dataclass(frozen=True)
class AppendLog(Command):
    """Append styled text to the display log."""
    text: str
    tag: RenderTag
    command_type: CommandType = CommandType.APPEND_LOG


@dataclass(frozen=True)
class DeleteLast(Command):
    """Splice correction: remove the last `count` characters of the log."""
    count: int
    command_type: CommandType = CommandType.DELETE_LAST


@dataclass(frozen=True)
class ClearLog(Command):
    command_type: CommandType = CommandType.CLEAR_LOG


# =============================================================================
# Transport Commands
# =============================================================================

@dataclass(frozen=True)
class OpenTransport(Command):
    """
    Start an asynchronous connect attempt.

    The runtime tags every result of this attempt with `epoch`.
    """
    epoch: int
    identity: str
    command_type: CommandType = CommandType.OPEN_TRANSPORT


@dataclass(frozen=True)
class WriteTransport(Command):
    """Write wire bytes; failure is reported as TransportIoError."""
    epoch: int
    data: bytes
    command_type: CommandType = CommandType.WRITE_TRANSPORT


@dataclass(frozen=True)
class CloseTransport(Command):
    """Close the transport. Idempotent."""
    command_type: CommandType = CommandType.CLOSE_TRANSPORT


# =============================================================================
# UI Signal Commands
# =============================================================================

@dataclass(frozen=True)
class ShowNotice(Command):
    """Transient message that does not enter the log."""
    text: str
    command_type: CommandType = CommandType.SHOW_NOTICE


@dataclass(frozen=True)
class SetAvailability(Command):
    """Whether send / dictation controls should be enabled."""
    can_send: bool
    command_type: CommandType = CommandType.SET_AVAILABILITY


@dataclass(frozen=True)
class SetDraft(Command):
    """Replace the pending input text shown to the user."""
    text: str
    command_type: CommandType = CommandType.SET_DRAFT


@dataclass(frozen=True)
class SetDictation(Command):
    """Start or stop the external dictation source."""
    active: bool
    command_type: CommandType = CommandType.SET_DICTATION


# =============================================================================
# Diagnostics
# =============================================================================

@dataclass(frozen=True)
class ReportInvalidTransition(Command):
    """
    An event was illegal in the current state.

    Runtime logs it, and raises only when strict transitions are enabled.
    """
    from_state: str
    action: str
    command_type: CommandType = CommandType.REPORT_INVALID_TRANSITION


# =============================================================================
# Observability
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Structured log record produced by a reducer decision."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
