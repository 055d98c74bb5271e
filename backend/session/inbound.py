"""
Thread-safe FIFO of inbound chunks awaiting decode.

Requirements:
- Producer (transport reader thread) and consumer (session loop) differ
- Strict FIFO: chunks are never reordered or merged
- drain() hands over everything pending as one batch
- Deterministic, synchronous behavior
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque


class InboundBatcher:
    """
    Bounded-by-consumer FIFO of byte chunks.

    push() returns True when the queue was empty before the push, i.e. when
    the caller must schedule a drain. Later pushes ride along with the drain
    that is already scheduled.
    """

    def __init__(self) -> None:
        self._chunks: Deque[bytes] = deque()
        self._lock = threading.Lock()
        self.total_chunks: int = 0
        self.total_bytes: int = 0

    def push(self, chunk: bytes) -> bool:
        with self._lock:
            was_empty = not self._chunks
            self._chunks.append(chunk)
            self.total_chunks += 1
            self.total_bytes += len(chunk)
            return was_empty

    def drain(self) -> tuple[bytes, ...]:
        """
        Atomically take all pending chunks, oldest first.

        Returns an empty tuple if nothing is pending.
        """
        with self._lock:
            if not self._chunks:
                return ()
            out = tuple(self._chunks)
            self._chunks.clear()
            return out

    def clear(self) -> None:
        """Drop pending chunks (used when the connection they belong to ends)."""
        with self._lock:
            self._chunks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)

    def snapshot(self) -> dict[str, int]:
        """
        Lightweight snapshot for logging.
        """
        with self._lock:
            return {
                "pending_chunks": len(self._chunks),
                "total_chunks": self.total_chunks,
                "total_bytes": self.total_bytes,
            }
