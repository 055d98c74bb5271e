# backend/protocol/codec.py
"""
Terminal codec: user text <-> wire bytes <-> rendered log text.

Outbound (encode):
    TEXT: wire = utf8(text) + newline bytes
          echo = text + "\n"
    HEX:  canonical = hex(from_hex(text) + newline bytes)
          wire = from_hex(canonical)
          echo = canonical + "\n"

Inbound (decode_batch):
    HEX:  one canonical hex line per chunk
    TEXT: incremental UTF-8 decode, caret escapes for control characters,
          CR LF folded to a single line break when the newline mode is CRLF,
          including a CR LF split across two chunks (splice correction).

Usage example:

    sent = encode(draft, encoding=EncodingMode.TEXT, newline=NewlineMode.CRLF)
    transport.write(sent.wire)
    renderer.append(sent.echo, RenderTag.SENT)

    result = decode_batch(
        chunks,
        encoding=EncodingMode.TEXT,
        newline=NewlineMode.CRLF,
        state=decode_state,
    )
    if result.retract:
        renderer.delete_last(result.retract)
    renderer.append(result.text, RenderTag.RECEIVED)
    decode_state = result.state

All functions are pure; the only cross-call state is the DecodeState value
the caller threads through.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Iterable

from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode
from spec import (
    CARET_CONTROL_LIMIT,
    CARET_OFFSET,
    CARET_PREFIX,
    DEL_CARET,
    DEL_CODEPOINT,
    HEX_PAIR_SEPARATOR,
    LOG_LINE_BREAK,
    WIRE_TEXT_ENCODING,
)


# -------------------------
# Exceptions
# -------------------------

class CodecError(Exception):
    """Base class for codec errors."""


class InvalidHexInput(CodecError):
    """
    Raised when outbound hex text is not a sequence of hex digit pairs.

    Nothing may be written to the transport for the offending input; the
    draft is kept so the user can correct it.
    """


# -------------------------
# Value types
# -------------------------

@dataclass(frozen=True)
class EncodedSend:
    """
    Result of encoding one outbound submission.

    wire: exact bytes for the transport
    echo: text to append to the log (always ends with one line break)
    """
    wire: bytes
    echo: str


@dataclass(frozen=True)
class DecodeState:
    """
    Cross-call inbound state for one connection.

    pending_newline:
        True iff the last rendered inbound character was a bare CR that may
        be the first half of a CR LF split across chunks.

    carry:
        Trailing bytes of an incomplete UTF-8 sequence, held back until the
        next chunk completes them.
    """
    pending_newline: bool = False
    carry: bytes = b""


@dataclass(frozen=True)
class DecodeResult:
    """
    Render instructions for one decode_batch call.

    retract:
        Number of characters to delete from the END of the existing log
        before appending `text` (splice correction for a split CR LF).
    """
    text: str
    retract: int
    state: DecodeState


# -------------------------
# Low-level helpers
# -------------------------

def from_hex_string(text: str) -> bytes:
    """
    Parse hex digit pairs. Case-insensitive; whitespace allowed between pairs.

    Raises InvalidHexInput for odd digit counts, non-hex characters, or
    whitespace inside a pair.
    """
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise InvalidHexInput(str(e)) from e


def to_hex_string(data: bytes) -> str:
    """Canonical hex: upper-case pairs separated by single spaces."""
    return data.hex(HEX_PAIR_SEPARATOR).upper()


def to_caret_string(text: str, *, keep_newline: bool) -> str:
    """
    Render control characters as caret escapes (0x0D -> "^M", 0x7F -> "^?").

    LF stays a real line break when keep_newline is set.
    """
    out: list[str] = []
    for ch in text:
        code = ord(ch)
        if code < CARET_CONTROL_LIMIT and not (keep_newline and ch == "\n"):
            out.append(CARET_PREFIX + chr(code + CARET_OFFSET))
        elif code == DEL_CODEPOINT:
            out.append(DEL_CARET)
        else:
            out.append(ch)
    return "".join(out)


# Width of the rendered form of a bare CR; this is what the splice retracts.
CR_ESCAPE_WIDTH: int = len(to_caret_string("\r", keep_newline=True))


def _decode_utf8_prefix(data: bytes) -> tuple[str, bytes]:
    """
    Decode as much of `data` as forms complete characters.

    Returns (text, carry) where carry is an incomplete trailing sequence.
    Invalid bytes decode to U+FFFD.
    """
    decoder = codecs.getincrementaldecoder(WIRE_TEXT_ENCODING)(errors="replace")
    text = decoder.decode(data, final=False)
    carry, _ = decoder.getstate()
    return text, carry


# -------------------------
# Outbound
# -------------------------

def encode(
    text: str,
    *,
    encoding: EncodingMode,
    newline: NewlineMode,
) -> EncodedSend:
    """
    Encode one user submission.

    Never touches connection state; callers must check CONNECTED first.
    """
    if encoding is EncodingMode.HEX:
        canonical = to_hex_string(from_hex_string(text) + newline.wire_bytes)
        return EncodedSend(
            wire=from_hex_string(canonical),
            echo=canonical + LOG_LINE_BREAK,
        )

    return EncodedSend(
        wire=text.encode(WIRE_TEXT_ENCODING, errors="replace") + newline.wire_bytes,
        echo=text + LOG_LINE_BREAK,
    )


# -------------------------
# Inbound
# -------------------------

def decode_batch(
    chunks: Iterable[bytes],
    *,
    encoding: EncodingMode,
    newline: NewlineMode,
    state: DecodeState,
    cr_escape_width: int = CR_ESCAPE_WIDTH,
) -> DecodeResult:
    """
    Render a batch of inbound chunks, in the order given.

    Output for the whole batch is one buffer. A split CR LF is repaired
    inside the buffer when possible, otherwise reported via `retract`.
    """
    if encoding is EncodingMode.HEX:
        text = "".join(to_hex_string(chunk) + LOG_LINE_BREAK for chunk in chunks)
        return DecodeResult(text=text, retract=0, state=DecodeState())

    keep_newline = newline is not NewlineMode.NONE
    crlf = newline is NewlineMode.CRLF

    rendered = ""
    retract = 0
    pending = state.pending_newline and crlf
    carry = state.carry

    for chunk in chunks:
        msg, carry = _decode_utf8_prefix(carry + chunk)
        if not msg:
            continue

        if crlf:
            # Only a bare LF completes the pending CR; "\r\n" is its own pair
            if pending and msg[0] == "\n":
                if rendered:
                    rendered = rendered[:-cr_escape_width]
                else:
                    retract += cr_escape_width
            msg = msg.replace("\r\n", "\n")
            pending = msg.endswith("\r")

        rendered += to_caret_string(msg, keep_newline=keep_newline)

    return DecodeResult(
        text=rendered,
        retract=retract,
        state=DecodeState(pending_newline=pending, carry=carry),
    )
