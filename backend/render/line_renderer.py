"""
Append-only styled display log.

The renderer is the only mutator of the RenderLog. Any presentation layer
(websocket client, terminal, native widget) can mirror it through
subscribe(), which receives every op as a plain dict.

Thread-safety: all operations hold one lock so a UI thread may read while
the session loop writes.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class RenderTag(str, Enum):
    """Semantic color of a run of text."""

    SENT = "sent"
    RECEIVED = "received"
    STATUS = "status"


@dataclass(frozen=True)
class StyledRun:
    """One contiguous piece of log text with a single tag."""
    text: str
    tag: RenderTag


class Underflow(Exception):
    """Raised by delete_last(n) in strict mode when fewer than n characters exist."""


RenderObserver = Callable[[dict[str, Any]], None]


class LineRenderer:
    """
    Owner of the RenderLog.

    Mutators: append(), delete_last(), clear().
    delete_last() exists only for splice correction of a split CR LF and
    clamps on underflow unless strict=True.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict
        self._runs: list[StyledRun] = []
        self._length = 0
        self._lock = threading.Lock()
        self._observers: list[RenderObserver] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: RenderObserver) -> Callable[[], None]:
        """
        Register a callback for render ops. Returns an unsubscribe function.

        Callbacks run on the writer's thread, outside the lock.
        """
        with self._lock:
            self._observers.append(observer)

        def _unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return _unsubscribe

    def _notify(self, op: dict[str, Any]) -> None:
        with self._lock:
            observers = tuple(self._observers)
        for observer in observers:
            observer(op)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def append(self, text: str, tag: RenderTag) -> None:
        if not text:
            return

        with self._lock:
            if self._runs and self._runs[-1].tag is tag:
                last = self._runs[-1]
                self._runs[-1] = StyledRun(text=last.text + text, tag=tag)
            else:
                self._runs.append(StyledRun(text=text, tag=tag))
            self._length += len(text)

        self._notify({"op": "append", "text": text, "tag": tag.value})

    def delete_last(self, n: int) -> int:
        """
        Remove the last n characters, across run boundaries.

        Returns the number of characters actually removed.
        """
        if n <= 0:
            return 0

        with self._lock:
            available = self._length
            if n > available:
                if self._strict:
                    raise Underflow(f"delete_last({n}) with only {available} characters")
                clamped = True
                n = available
            else:
                clamped = False

            remaining = n
            while remaining and self._runs:
                last = self._runs[-1]
                if len(last.text) <= remaining:
                    remaining -= len(last.text)
                    self._runs.pop()
                else:
                    self._runs[-1] = StyledRun(
                        text=last.text[:-remaining],
                        tag=last.tag,
                    )
                    remaining = 0
            self._length -= n

        if clamped:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "RENDER_UNDERFLOW_CLAMPED",
                "deleted": n,
            })

        if n:
            self._notify({"op": "delete_last", "count": n})
        return n

    def clear(self) -> None:
        with self._lock:
            self._runs.clear()
            self._length = 0

        self._notify({"op": "clear"})

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def runs(self) -> tuple[StyledRun, ...]:
        with self._lock:
            return tuple(self._runs)

    def text(self) -> str:
        with self._lock:
            return "".join(run.text for run in self._runs)

    def __len__(self) -> int:
        with self._lock:
            return self._length
