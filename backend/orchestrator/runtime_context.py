"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for command execution (renderer, transport, control queue).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from adapters.transport.base import Transport
    from session.terminal_session import TerminalSession


# ---------------------------------------------------------------------
# Renderer Protocol
# ---------------------------------------------------------------------

@runtime_checkable
class RendererProtocol(Protocol):
    """
    Append / delete-last contract any presentation layer can implement.
    """

    def append(self, text: str, tag: Any) -> None: ...

    def delete_last(self, n: int) -> int: ...

    def clear(self) -> None: ...


# ---------------------------------------------------------------------
# Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Live view over session-owned resources.

    Runtime reads through this object on every command so that resources
    attached after construction are picked up.
    """

    def __init__(self, *, session: TerminalSession) -> None:
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def renderer(self) -> RendererProtocol:
        return self.session.renderer

    @property
    def transport(self) -> Transport | None:
        return self.session.transport

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        self.session.enqueue_control(msg)
