# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

import orchestrator.runtime as runtime_mod
from orchestrator.commands import LogEvent
from orchestrator.enums.state import ConnectionState
from orchestrator.events import ConnectRequested, EventType
from orchestrator.reducer import reduce
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import TerminalState
from session.terminal_session import TerminalSession


def connect(ts_ms: int = 123) -> ConnectRequested:
    return ConnectRequested(
        event_type=EventType.CONNECT_REQUESTED,
        ts_ms=ts_ms,
        identity="/dev/rfcomm0",
    )


def test_reducer_emits_logevent_with_required_fields() -> None:
    _, commands = reduce(TerminalState(), connect())

    log_events = [c for c in commands if isinstance(c, LogEvent)]
    assert log_events, "Reducer must emit at least one LogEvent"

    payload = log_events[0].event

    assert payload["ts_ms"] == 123
    assert payload["event_type"] == "CONNECT_REQUESTED"
    assert payload["decision"] == "state_changed"
    assert payload["connection"] == ConnectionState.CONNECTING.value
    assert payload["epoch"] == 1
    assert payload["encoding"] == "text"
    assert payload["newline"] == "crlf"
    assert payload["details"]["from_state"] == "DISCONNECTED"


def test_runtime_tags_logevents_with_session_id(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(runtime_mod, "log_event", emitted.append)

    session = TerminalSession(session_id="sess_log")
    runtime = Runtime(
        initial_state=TerminalState(),
        context=RuntimeExecutionContext(session=session),
    )

    # No transport attached: the connect attempt fails immediately
    asyncio.run(runtime.handle_event(connect()))

    decisions = [e.get("decision") for e in emitted]
    assert "state_changed" in decisions
    assert all(e["session_id"] == "sess_log" for e in emitted if "decision" in e)
    assert runtime.state.connection is ConnectionState.DISCONNECTED
