"""
BEHAVIORAL CONSTANTS
--------------------
Single source of truth for all behavioral constants of the terminal session.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Newline byte sequences
# =============================================================================

NEWLINE_NONE: Final[str] = ""
NEWLINE_LF: Final[str] = "\n"
NEWLINE_CR: Final[str] = "\r"
NEWLINE_CRLF: Final[str] = "\r\n"

# Visual line break appended to every echo / status line in the log
LOG_LINE_BREAK: Final[str] = "\n"

# =============================================================================
# Text decoding / caret escapes
# =============================================================================

WIRE_TEXT_ENCODING: Final[str] = "utf-8"

CARET_PREFIX: Final[str] = "^"
CARET_OFFSET: Final[int] = 0x40
CARET_CONTROL_LIMIT: Final[int] = 0x20
DEL_CODEPOINT: Final[int] = 0x7F
DEL_CARET: Final[str] = "^?"

# =============================================================================
# Hex rendering
# =============================================================================

HEX_PAIR_SEPARATOR: Final[str] = " "

# =============================================================================
# Serial transport
# =============================================================================

SERIAL_DEFAULT_DEVICE: Final[str] = "/dev/rfcomm0"
SERIAL_DEFAULT_BAUDRATE: Final[int] = 115_200
SERIAL_READ_TIMEOUT_S: Final[float] = 0.05
SERIAL_WRITE_TIMEOUT_S: Final[float] = 2.0

# =============================================================================
# Status / notice texts
# =============================================================================

STATUS_CONNECTING: Final[str] = "connecting..."
STATUS_CONNECTED: Final[str] = "connected"
STATUS_CONNECT_FAILED: Final[str] = "connection failed: {reason}"
STATUS_CONNECTION_LOST: Final[str] = "connection lost: {reason}"

NOTICE_NOT_CONNECTED: Final[str] = "not connected"
NOTICE_INVALID_HEX: Final[str] = "invalid hex input: {detail}"

STATUS_DICTATION_WAIT: Final[str] = "Please wait for Bluetooth connection to complete."
STATUS_DICTATION_LISTENING: Final[str] = "Listening... Speak now."
STATUS_DICTATION_STOPPED: Final[str] = "Speech recognition stopped."
STATUS_DICTATION_RECOGNIZED: Final[str] = "Recognized: {text}"
STATUS_DICTATION_READY: Final[str] = "Text ready to send. Press send button to transmit."
STATUS_DICTATION_ERROR: Final[str] = "Speech recognition error: {reason}"
