"""
Encoding mode enumeration.

Modes are orthogonal to connection state:
- ConnectionState answers: "May we talk to the peer?"
- EncodingMode answers:    "How are bytes shown and typed?"
"""

from __future__ import annotations

from enum import Enum


class EncodingMode(str, Enum):
    """
    How outbound input is parsed and inbound bytes are rendered.

    TEXT:
        Input is sent as UTF-8; received bytes are decoded and caret-escaped.

    HEX:
        Input is a sequence of hex digit pairs; received chunks are shown
        as canonical hex, one line per chunk.
    """

    TEXT = "text"
    HEX = "hex"
