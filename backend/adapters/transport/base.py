"""
Transport adapter contract.

This module defines the *interface only*: no decoding, rendering, retries,
or state transitions live here.

Key invariants:
- Epochs are owned by the session reducer. Transports never see them; the
  runtime binds each attached listener to the epoch of its connect attempt.
- The transport reports facts (bytes, I/O errors) to its listener; it does
  not call the reducer.
- Listener callbacks may arrive on any thread, strictly in read order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Protocol


class TransportError(Exception):
    """Base class for transport failures."""


class TransportConnectError(TransportError):
    """Raised by connect() when the link could not be established."""


class TransportIoError(TransportError):
    """The link failed during I/O. Never retried here."""


class TransportListener(Protocol):
    """Receiver of inbound transport activity."""

    def on_bytes(self, chunk: bytes) -> None: ...

    def on_io_error(self, reason: str) -> None: ...


class Transport(ABC):
    """
    Abstract byte-stream transport (Bluetooth serial, socket, loopback).

    Implementations are responsible for:
    - Opening the link in connect() without blocking the event loop
    - Delivering every received chunk to the attached listener, in order
    - Reporting read failures through listener.on_io_error()

    Non-responsibilities:
    - No device discovery or pairing
    - No reconnect or retry policy
    - No knowledge of encoding or newline modes
    """

    @abstractmethod
    def attach(self, listener: TransportListener) -> None:
        """
        Route subsequent inbound activity to `listener`.

        Replaces any previously attached listener.
        """
        raise NotImplementedError

    @abstractmethod
    def detach(self) -> None:
        """Stop delivering inbound activity. Idempotent."""
        raise NotImplementedError

    @abstractmethod
    async def connect(self, identity: str) -> None:
        """
        Open the link to `identity` (device path or URL).

        Raises:
            TransportConnectError if the link could not be opened.
        """
        raise NotImplementedError

    @abstractmethod
    def write(self, data: bytes) -> None:
        """
        Queue wire bytes for the link. Must not block the event loop.

        Raises:
            TransportIoError if the link is not open, or if the write failed
            synchronously. A failure found later is reported through
            TransportListener.on_io_error.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """
        Close the link.

        MUST be idempotent: closing a closed or never-opened transport is a
        no-op.
        """
        raise NotImplementedError
