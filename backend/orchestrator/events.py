"""
Unified event definitions for the terminal session reducer.

Rules:
- Events describe facts that have occurred or requests that were made.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Transport events carry the connection epoch they were issued under so the
reducer can drop results that belong to a cancelled attempt.
"""

from __future__ import annotations

from dataclasses import dataclass

from enum import Enum

from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # User connection control
    # ------------------------------------------------------------------
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    DISCONNECT_REQUESTED = "DISCONNECT_REQUESTED"

    # ------------------------------------------------------------------
    # Transport results (epoch-scoped)
    # ------------------------------------------------------------------
    TRANSPORT_CONNECTED = "TRANSPORT_CONNECTED"
    TRANSPORT_CONNECT_ERROR = "TRANSPORT_CONNECT_ERROR"
    TRANSPORT_IO_ERROR = "TRANSPORT_IO_ERROR"
    BYTES_RECEIVED = "BYTES_RECEIVED"

    # ------------------------------------------------------------------
    # User input
    # ------------------------------------------------------------------
    SEND_REQUESTED = "SEND_REQUESTED"
    DRAFT_CHANGED = "DRAFT_CHANGED"
    CLEAR_REQUESTED = "CLEAR_REQUESTED"

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    ENCODING_MODE_CHANGED = "ENCODING_MODE_CHANGED"
    NEWLINE_MODE_CHANGED = "NEWLINE_MODE_CHANGED"
    AUTO_SUBMIT_CHANGED = "AUTO_SUBMIT_CHANGED"

    # ------------------------------------------------------------------
    # Dictation
    # ------------------------------------------------------------------
    DICTATION_TOGGLED = "DICTATION_TOGGLED"
    DICTATION_PARTIAL = "DICTATION_PARTIAL"
    DICTATION_FINAL = "DICTATION_FINAL"
    DICTATION_ERROR = "DICTATION_ERROR"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class TransportEvent(Event):
    """
    Base class for results reported by the transport.

    The reducer MUST ignore transport events whose epoch does not match
    the current connection epoch.
    """

    epoch: int


# =============================================================================
# Connection Control
# =============================================================================

@dataclass(frozen=True)
class ConnectRequested(Event):
    """User asked to connect to a device."""
    identity: str


@dataclass(frozen=True)
class DisconnectRequested(Event):
    """User (or teardown) asked to disconnect. Legal in every state."""


# =============================================================================
# Transport Events
# =============================================================================

@dataclass(frozen=True)
class TransportConnected(TransportEvent):
    """Connect attempt for `epoch` succeeded."""


@dataclass(frozen=True)
class TransportConnectError(TransportEvent):
    """Connect attempt for `epoch` failed."""
    reason: str


@dataclass(frozen=True)
class TransportIoError(TransportEvent):
    """Read or write failed on an established link."""
    reason: str


@dataclass(frozen=True)
class BytesReceived(TransportEvent):
    """
    Inbound chunks collected since the last batch, in arrival order.

    Chunks are never merged or reordered by the producer.
    """
    chunks: tuple[bytes, ...]


# =============================================================================
# User Input
# =============================================================================

@dataclass(frozen=True)
class SendRequested(Event):
    """User submitted text for transmission."""
    text: str


@dataclass(frozen=True)
class DraftChanged(Event):
    """User edited the pending input text."""
    text: str


@dataclass(frozen=True)
class ClearRequested(Event):
    """User cleared the display log."""


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class EncodingModeChanged(Event):
    mode: EncodingMode


@dataclass(frozen=True)
class NewlineModeChanged(Event):
    mode: NewlineMode


@dataclass(frozen=True)
class AutoSubmitChanged(Event):
    enabled: bool


# =============================================================================
# Dictation
# =============================================================================

@dataclass(frozen=True)
class DictationToggled(Event):
    """User pressed the microphone button."""


@dataclass(frozen=True)
class DictationPartial(Event):
    """
    Partial recognition result.

    May be revised by later partials; only updates the draft.
    """
    text: str


@dataclass(frozen=True)
class DictationFinal(Event):
    """Final recognition result; sent when auto-submit is enabled."""
    text: str


@dataclass(frozen=True)
class DictationError(Event):
    """Recognition failed."""
    reason: str
