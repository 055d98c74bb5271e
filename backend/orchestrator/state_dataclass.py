"""
Authoritative terminal session state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode
from orchestrator.enums.state import ConnectionState
from protocol.codec import DecodeState


# =============================================================================
# Terminal State
# =============================================================================

@dataclass(frozen=True)
class TerminalState:
    """Immutable snapshot of all reducer-owned session state."""

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    connection: ConnectionState = ConnectionState.DISCONNECTED

    # Generation counter; bumped on every connect attempt and disconnect.
    # Transport results carrying another epoch are stale.
    epoch: int = 0

    identity: str | None = None
    last_error: str | None = None

    # ------------------------------------------------------------------
    # Configuration (mutable mid-session, applies to the next operation)
    # ------------------------------------------------------------------
    encoding: EncodingMode = EncodingMode.TEXT
    newline: NewlineMode = NewlineMode.CRLF
    auto_submit_dictation: bool = True

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    draft: str = ""
    dictation_active: bool = False

    # ------------------------------------------------------------------
    # Inbound decode (reset on every connect attempt)
    # ------------------------------------------------------------------
    decode: DecodeState = field(default_factory=DecodeState)
