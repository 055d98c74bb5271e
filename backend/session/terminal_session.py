"""
Terminal session container.

- Owns the render log, the transport handle and the runtime
- Owned and mutated by SessionGateway
- NOT a state machine
- Contains no session logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from adapters.transport.base import Transport
from orchestrator.runtime import Runtime
from render.line_renderer import LineRenderer


# ---------------------------------------------------------------------
# TerminalSession
# ---------------------------------------------------------------------


@dataclass
class TerminalSession:
    """Mutable runtime container for a single terminal session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Display log
    # ------------------------------------------------------------------

    renderer: LineRenderer = field(default_factory=LineRenderer)

    # ------------------------------------------------------------------
    # Transport (owned handle, explicit attach/detach)
    # ------------------------------------------------------------------

    transport: Transport | None = None

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()
        self._unsubscribe_renderer = self.renderer.subscribe(self._on_render_op)

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_transport(self, transport: Transport) -> None:
        """Attach the transport handle. Must happen before the first connect."""
        self.transport = transport

    def detach_transport(self) -> None:
        """
        Release the transport handle.

        Callers disconnect first; this only drops the reference.
        """
        if self.transport is not None:
            self.transport.detach()
        self.transport = None

    def attach_runtime(self, runtime: Runtime) -> None:
        """
        Attach the runtime executor.

        Must be called after the transport is attached.
        """
        self.runtime = runtime

    def close(self) -> None:
        """Stop mirroring render ops into the control queue."""
        self._unsubscribe_renderer()

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """
        Return standard logging context for this session.
        """
        connection = (
            self.runtime.state.connection.value if self.runtime is not None else None
        )
        return {
            "session_id": self.session_id,
            "connection": connection,
            "log_chars": len(self.renderer),
        }

    # ------------------------------------------------------------------
    # Control queue (outbound to the presentation layer)
    # ------------------------------------------------------------------

    def _on_render_op(self, op: dict[str, Any]) -> None:
        self.enqueue_control({"type": "RENDER", **op})

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for gateway delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns:
            A FIFO-ordered tuple of control messages. Returns an empty
            tuple if no messages are pending.

        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> tuple[dict[str, Any], ...]:
        """Wait until at least one control message is pending, then drain."""
        await self._control_ready.wait()
        return self.drain_control()
