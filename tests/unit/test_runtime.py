# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

from conftest import FakeTransport, settle

import orchestrator.runtime as runtime_mod
from orchestrator.enums.state import ConnectionState
from orchestrator.events import (
    ClearRequested,
    ConnectRequested,
    DisconnectRequested,
    EventType,
    SendRequested,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import TerminalState
from session.connection_state import InvalidTransition
from session.terminal_session import TerminalSession


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def build(transport: FakeTransport, **kwargs: Any) -> tuple[TerminalSession, Runtime]:
    session = TerminalSession(session_id="sess_test")
    session.attach_transport(transport)
    runtime = Runtime(
        initial_state=TerminalState(),
        context=RuntimeExecutionContext(session=session),
        **kwargs,
    )
    session.attach_runtime(runtime)
    return session, runtime


def connect() -> ConnectRequested:
    return ConnectRequested(
        event_type=EventType.CONNECT_REQUESTED, ts_ms=0, identity="loop://"
    )


def disconnect() -> DisconnectRequested:
    return DisconnectRequested(event_type=EventType.DISCONNECT_REQUESTED, ts_ms=0)


def send(text: str) -> SendRequested:
    return SendRequested(event_type=EventType.SEND_REQUESTED, ts_ms=0, text=text)


async def connected(transport: FakeTransport) -> tuple[TerminalSession, Runtime]:
    session, runtime = build(transport)
    await runtime.handle_event(connect())
    await settle()
    assert runtime.state.connection is ConnectionState.CONNECTED
    return session, runtime


# ---------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------

def test_connect_reaches_connected(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, runtime = await connected(transport)

        assert transport.identities == ["loop://"]
        assert runtime.can_send is True
        assert session.renderer.text() == "connecting...\nconnected\n"

        control = session.drain_control()
        assert {"type": "AVAILABILITY", "can_send": True} in control

    asyncio.run(scenario())


def test_connect_failure_is_reported_in_the_log(transport: FakeTransport) -> None:
    async def scenario() -> None:
        transport.connect_error = "no such device"
        session, runtime = build(transport)

        await runtime.handle_event(connect())
        await settle()

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert session.renderer.text().endswith("connection failed: no such device\n")

    asyncio.run(scenario())


def test_disconnect_during_connect_drops_the_late_result(transport: FakeTransport) -> None:
    async def scenario() -> None:
        transport.gate = asyncio.Event()
        session, runtime = build(transport)

        await runtime.handle_event(connect())
        await settle()
        await runtime.handle_event(disconnect())

        transport.gate.set()
        await settle()

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert "connected\n" not in session.renderer.text()
        assert transport.listener is None

    asyncio.run(scenario())


def test_disconnect_closes_transport_and_is_repeatable(transport: FakeTransport) -> None:
    async def scenario() -> None:
        _, runtime = await connected(transport)

        await runtime.handle_event(disconnect())
        await runtime.handle_event(disconnect())

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert transport.close_calls == 2
        assert transport.is_open is False

    asyncio.run(scenario())


def test_invalid_transition_raises_only_when_strict(transport: FakeTransport) -> None:
    async def scenario() -> None:
        _, lenient = build(transport)
        await lenient.handle_event(connect())
        await lenient.handle_event(connect())
        assert lenient.state.connection is ConnectionState.CONNECTING

        _, strict = build(FakeTransport(), strict_transitions=True)
        await strict.handle_event(connect())
        with pytest.raises(InvalidTransition):
            await strict.handle_event(connect())

    asyncio.run(scenario())


def test_strict_invalid_transition_is_logged_before_raising(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(runtime_mod, "log_event", emitted.append)

    async def scenario() -> None:
        _, strict = build(FakeTransport(), strict_transitions=True)
        await strict.handle_event(connect())
        with pytest.raises(InvalidTransition):
            await strict.handle_event(connect())

    asyncio.run(scenario())

    decisions = [e.get("decision") for e in emitted]
    assert "invalid_transition" in decisions
    assert emitted[-1]["event_type"] == "INVALID_TRANSITION"


# ---------------------------------------------------------------------
# Inbound bytes
# ---------------------------------------------------------------------

def test_inbound_split_crlf_renders_one_line_break(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, _ = await connected(transport)

        transport.emit(b"A\r")
        await settle()
        assert session.renderer.text().endswith("A^M")

        transport.emit(b"\nB")
        await settle()
        assert session.renderer.text().endswith("connected\nA\nB")

    asyncio.run(scenario())


def test_split_crlf_around_a_send_keeps_the_echo(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, _ = await connected(transport)

        transport.emit(b"A\r")
        await settle()
        await runtime_send(session, "hi")
        transport.emit(b"\nB")
        await settle()

        assert session.renderer.text() == "connecting...\nconnected\nA^Mhi\n\nB"

    asyncio.run(scenario())


def test_split_crlf_around_a_clear_keeps_the_echo(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, runtime = await connected(transport)

        transport.emit(b"A\r")
        await settle()
        await runtime.handle_event(
            ClearRequested(event_type=EventType.CLEAR_REQUESTED, ts_ms=0)
        )
        await runtime_send(session, "hello")
        transport.emit(b"\nB")
        await settle()

        assert session.renderer.text() == "hello\n\nB"

    asyncio.run(scenario())


def test_burst_is_rendered_in_order(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, _ = await connected(transport)

        for chunk in (b"1", b"2", b"3"):
            transport.emit(chunk)
        await settle()

        assert session.renderer.text().endswith("123")

    asyncio.run(scenario())


def test_read_failure_loses_connection(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, runtime = await connected(transport)

        transport.fail_read("device reports readiness to read but returned no data")
        await settle()

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert "connection lost: device reports" in session.renderer.text()
        assert runtime.can_send is False

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------

def test_send_echoes_and_writes(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, _ = await connected(transport)

        await runtime_send(session, "AT")

        assert transport.writes == [b"AT\r\n"]
        assert session.renderer.text().endswith("AT\n")

    asyncio.run(scenario())


def test_write_failure_becomes_connection_lost(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, runtime = await connected(transport)
        transport.fail_writes = True

        await runtime_send(session, "x")

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert session.renderer.text() == (
            "connecting...\nconnected\nx\nconnection lost: write failed\n"
        )
        assert transport.close_calls == 1

    asyncio.run(scenario())


def test_send_when_disconnected_is_a_notice(transport: FakeTransport) -> None:
    async def scenario() -> None:
        session, runtime = build(transport)

        await runtime.handle_event(send("x"))

        assert session.renderer.text() == ""
        assert transport.writes == []
        assert session.drain_control() == ({"type": "NOTICE", "text": "not connected"},)

    asyncio.run(scenario())


def test_shutdown_disconnects(transport: FakeTransport) -> None:
    async def scenario() -> None:
        _, runtime = await connected(transport)

        await runtime.shutdown()

        assert runtime.state.connection is ConnectionState.DISCONNECTED
        assert transport.is_open is False

    asyncio.run(scenario())


async def runtime_send(session: TerminalSession, text: str) -> None:
    assert session.runtime is not None
    await session.runtime.handle_event(send(text))
