"""
Newline convention enumeration.

A newline mode is a value, not a behavior:
- encode appends its byte sequence to every outbound text send
- decode uses it to decide how CR / LF render
"""

from __future__ import annotations

from enum import Enum

from spec import NEWLINE_CR, NEWLINE_CRLF, NEWLINE_LF, NEWLINE_NONE, WIRE_TEXT_ENCODING


class NewlineMode(str, Enum):
    """
    Line terminator appended to outbound text and expected on inbound text.

    NONE: nothing appended; inbound LF renders as a caret escape.
    LF / CR / CRLF: the usual serial conventions.
    """

    NONE = "none"
    LF = "lf"
    CR = "cr"
    CRLF = "crlf"

    @property
    def sequence(self) -> str:
        return _SEQUENCES[self]

    @property
    def wire_bytes(self) -> bytes:
        return self.sequence.encode(WIRE_TEXT_ENCODING)


_SEQUENCES: dict[NewlineMode, str] = {
    NewlineMode.NONE: NEWLINE_NONE,
    NewlineMode.LF: NEWLINE_LF,
    NewlineMode.CR: NEWLINE_CR,
    NewlineMode.CRLF: NEWLINE_CRLF,
}
