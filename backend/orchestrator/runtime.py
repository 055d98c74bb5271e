"""
Runtime execution shell for a single terminal session.

Responsibilities:
- Own terminal state
- Call pure reducer
- Execute commands with side effects (render log, transport, UI signals)
- Bind transport callbacks to the epoch of their connect attempt
- Convert transport results into events

Non-responsibilities:
- Decoding / encoding (codec, called by the reducer)
- Deciding transitions (reducer)
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING, Callable

from adapters.transport.base import (
    Transport,
    TransportConnectError as ConnectFailure,
    TransportIoError as IoFailure,
)
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.commands import (
    AppendLog,
    ClearLog,
    CloseTransport,
    Command,
    DeleteLast,
    LogEvent,
    OpenTransport,
    ReportInvalidTransition,
    SetAvailability,
    SetDictation,
    SetDraft,
    ShowNotice,
    WriteTransport,
)
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    BytesReceived,
    DisconnectRequested,
    Event,
    EventType,
    TransportConnectError,
    TransportConnected,
    TransportIoError,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import TerminalState
from session.connection_state import InvalidTransition
from session.inbound import InboundBatcher

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------
# Epoch-bound transport listener
# ---------------------------------------------------------------------

class EpochListener:
    """
    Transport listener for one connect attempt.

    Called from the transport's reader thread. Never touches session state:
    chunks go into a thread-safe FIFO and one drain per burst is scheduled
    on the session loop, which turns everything pending into a single
    BytesReceived batch tagged with this listener's epoch.
    """

    def __init__(
        self,
        *,
        epoch: int,
        loop: asyncio.AbstractEventLoop,
        dispatch: Callable[[Event], None],
    ) -> None:
        self.epoch = epoch
        self._loop = loop
        self._dispatch = dispatch
        self._inbound = InboundBatcher()

    def on_bytes(self, chunk: bytes) -> None:
        if self._inbound.push(chunk):
            self._post(self._flush)

    def on_io_error(self, reason: str) -> None:
        self._post(
            self._dispatch,
            TransportIoError(
                event_type=EventType.TRANSPORT_IO_ERROR,
                ts_ms=_now_ms(),
                epoch=self.epoch,
                reason=reason,
            ),
        )

    def _post(self, callback: Callable[..., None], *args: object) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def discard(self) -> dict[str, int]:
        """Drop chunks not yet dispatched. Returns inbound totals for logging."""
        stats = self._inbound.snapshot()
        self._inbound.clear()
        return stats

    def _flush(self) -> None:
        chunks = self._inbound.drain()
        if not chunks:
            return
        self._dispatch(
            BytesReceived(
                event_type=EventType.BYTES_RECEIVED,
                ts_ms=_now_ms(),
                epoch=self.epoch,
                chunks=chunks,
            )
        )


class Runtime:
    """
    Runtime execution boundary for a single terminal session.

    Responsibilities:
    - Own the authoritative terminal state
    - Act as the universal event sink for the session
      (user actions, transport results, dictation results)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State transitions are serialized (single writer)
    - All side effects occur *after* state has been updated
    - Failures of side effects re-enter as events, after the current
      event's commands have all run
    """

    def __init__(
        self,
        *,
        initial_state: TerminalState,
        context: RuntimeExecutionContext,
        strict_transitions: bool = False,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._strict_transitions = strict_transitions
        self._lock = asyncio.Lock()
        self._followups: deque[Event] = deque()
        self._connect_task: asyncio.Task[None] | None = None
        self._listener: EpochListener | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> TerminalState:
        """
        Return the current immutable terminal state.

        Consumers must never modify this state directly; it is only replaced
        internally by Runtime via the reducer.
        """
        return self._state

    @property
    def can_send(self) -> bool:
        return self._state.connection is ConnectionState.CONNECTED

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the session pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new state
        3. Execute all emitted commands sequentially
        4. Process follow-up events raised by failed side effects

        This method is the *only* entry point for events affecting session
        state. Transport threads reach it via EpochListener, which hops
        onto the event loop first.
        """
        async with self._lock:
            self._followups.append(event)
            try:
                while self._followups:
                    current = self._followups.popleft()
                    new_state, commands = reduce(self._state, current)
                    self._state = new_state

                    for cmd in commands:
                        self._execute_command(cmd)
            finally:
                self._followups.clear()

    def dispatch(self, event: Event) -> None:
        """
        Fire-and-forget handle_event from synchronous code on the loop.

        Tasks start in creation order, so FIFO order is preserved.
        """
        task = asyncio.get_running_loop().create_task(self.handle_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Disconnects, cancels an in-flight connect attempt and waits for
        pending dispatches. Called by the gateway when its client leaves.
        """
        await self.handle_event(
            DisconnectRequested(
                event_type=EventType.DISCONNECT_REQUESTED,
                ts_ms=_now_ms(),
            )
        )

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
            })

        elif isinstance(cmd, AppendLog):
            self._ctx.renderer.append(cmd.text, cmd.tag)

        elif isinstance(cmd, DeleteLast):
            self._ctx.renderer.delete_last(cmd.count)

        elif isinstance(cmd, ClearLog):
            self._ctx.renderer.clear()

        elif isinstance(cmd, OpenTransport):
            self._open_transport(cmd)

        elif isinstance(cmd, WriteTransport):
            self._write_transport(cmd)

        elif isinstance(cmd, CloseTransport):
            self._close_transport()

        elif isinstance(cmd, ShowNotice):
            self._ctx.enqueue_control({"type": "NOTICE", "text": cmd.text})

        elif isinstance(cmd, SetAvailability):
            self._ctx.enqueue_control({"type": "AVAILABILITY", "can_send": cmd.can_send})

        elif isinstance(cmd, SetDraft):
            self._ctx.enqueue_control({"type": "DRAFT", "text": cmd.text})

        elif isinstance(cmd, SetDictation):
            self._ctx.enqueue_control({"type": "DICTATION", "active": cmd.active})

        elif isinstance(cmd, ReportInvalidTransition):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_TRANSITION",
                "session_id": self._ctx.session_id,
                "from_state": cmd.from_state,
                "action": cmd.action,
            })
            if self._strict_transitions:
                raise InvalidTransition(ConnectionState(cmd.from_state), cmd.action)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _open_transport(self, cmd: OpenTransport) -> None:
        transport = self._ctx.transport
        if transport is None:
            self._followups.append(
                TransportConnectError(
                    event_type=EventType.TRANSPORT_CONNECT_ERROR,
                    ts_ms=_now_ms(),
                    epoch=cmd.epoch,
                    reason="no transport attached",
                )
            )
            return

        self._cancel_connect()
        self._listener = EpochListener(
            epoch=cmd.epoch,
            loop=asyncio.get_running_loop(),
            dispatch=self.dispatch,
        )
        transport.attach(self._listener)
        self._connect_task = asyncio.get_running_loop().create_task(
            self._connect(transport, cmd.epoch, cmd.identity)
        )

    async def _connect(self, transport: Transport, epoch: int, identity: str) -> None:
        """
        Await one connect attempt and report its outcome.

        A result that arrives after the attempt was superseded carries the
        old epoch and is dropped by the reducer.
        """
        try:
            with timed(
                "transport_connect",
                session_id=self._ctx.session_id,
                details={"identity": identity, "epoch": epoch},
            ):
                await transport.connect(identity)
        except asyncio.CancelledError:
            return
        except ConnectFailure as e:
            await self.handle_event(
                TransportConnectError(
                    event_type=EventType.TRANSPORT_CONNECT_ERROR,
                    ts_ms=_now_ms(),
                    epoch=epoch,
                    reason=str(e),
                )
            )
            return

        await self.handle_event(
            TransportConnected(
                event_type=EventType.TRANSPORT_CONNECTED,
                ts_ms=_now_ms(),
                epoch=epoch,
            )
        )

    def _write_transport(self, cmd: WriteTransport) -> None:
        transport = self._ctx.transport
        try:
            if transport is None:
                raise IoFailure("no transport attached")
            transport.write(cmd.data)
        except IoFailure as e:
            self._followups.append(
                TransportIoError(
                    event_type=EventType.TRANSPORT_IO_ERROR,
                    ts_ms=_now_ms(),
                    epoch=cmd.epoch,
                    reason=str(e),
                )
            )

    def _close_transport(self) -> None:
        self._cancel_connect()
        transport = self._ctx.transport
        if transport is not None:
            transport.detach()
            transport.close()

        listener, self._listener = self._listener, None
        if listener is not None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "TRANSPORT_CLOSED",
                "session_id": self._ctx.session_id,
                "epoch": listener.epoch,
                "inbound": listener.discard(),
            })

    def _cancel_connect(self) -> None:
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
