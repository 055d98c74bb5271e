"""
Authoritative connection state enumeration.

Rules:
- This enum defines ONLY the connection lifecycle states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in session.connection_state.
"""

from __future__ import annotations

from enum import Enum


class ConnectionState(str, Enum):
    """
    Lifecycle of the link to the peer device.

    DISCONNECTED is both the initial state and the safe terminal state.
    """

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
