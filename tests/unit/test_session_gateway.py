# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any

import pytest

from conftest import FakeTransport, settle

import session.gateway as gateway_mod
from config import AppConfig
from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode
from orchestrator.enums.state import ConnectionState
from session.gateway import SessionGateway


def make_config(**overrides: Any) -> AppConfig:
    values: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "device": "loop://",
        "baudrate": 115_200,
        "newline_mode": NewlineMode.CRLF,
        "encoding_mode": EncodingMode.TEXT,
        "auto_submit_dictation": True,
        "strict_transitions": False,
        "enable_json_logs": True,
        "host": "127.0.0.1",
        "port": 8000,
    }
    values.update(overrides)
    return AppConfig(**values)


def make_gateway(transport: FakeTransport, **overrides: Any) -> SessionGateway:
    return SessionGateway(
        config=make_config(**overrides),
        transport_factory=lambda _config: transport,
    )


def msg(**payload: Any) -> str:
    return json.dumps(payload)


# ---------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------

def test_connect_returns_session_init(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport, newline_mode=NewlineMode.LF)
        result = await gw.on_ws_connect()

        (init,) = result.outbound_json
        assert init["type"] == "SESSION_INIT"
        assert init["can_send"] is False
        assert init["config"]["newline_mode"] == "lf"
        assert gw.session is not None
        assert gw.session.runtime is not None
        assert gw.session.runtime.state.newline is NewlineMode.LF

    asyncio.run(scenario())


def test_disconnect_releases_the_transport(
    transport: FakeTransport,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.on_json_message(msg(type="CONNECT"))
        await settle()

        await gw.on_ws_disconnect(reason="client_disconnect")

        assert transport.is_open is False
        assert gw.can_send is False

    asyncio.run(scenario())

    assert emitted[-1]["event_type"] == "SESSION_ENDED"
    assert emitted[-1]["reason"] == "client_disconnect"


# ---------------------------------------------------------------------
# Message routing
# ---------------------------------------------------------------------

def test_connect_message_uses_configured_device(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport, device="/dev/rfcomm3")
        await gw.on_ws_connect()

        result = await gw.on_json_message(msg(type="CONNECT"))
        assert {"type": "AVAILABILITY", "can_send": False} in result.outbound_json

        await settle()
        assert transport.identities == ["/dev/rfcomm3"]
        assert gw.can_send is True

    asyncio.run(scenario())


def test_connect_message_device_overrides_config(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.on_json_message(msg(type="CONNECT", device="socket://bridge:7000"))
        await settle()

        assert transport.identities == ["socket://bridge:7000"]

    asyncio.run(scenario())


def test_send_message_renders_echo(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.connect()
        await settle()
        assert gw.session is not None
        gw.session.drain_control()

        result = await gw.on_json_message(msg(type="SEND", text="hi"))

        assert result.outbound_json == (
            {"type": "RENDER", "op": "append", "text": "hi\n", "tag": "sent"},
        )
        assert transport.writes == [b"hi\r\n"]

    asyncio.run(scenario())


def test_send_while_disconnected_returns_notice(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()

        result = await gw.on_json_message(msg(type="SEND", text="hi"))

        assert result.outbound_json == ({"type": "NOTICE", "text": "not connected"},)

    asyncio.run(scenario())


def test_set_encoding_clears_draft(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.on_json_message(msg(type="DRAFT", text="hello"))

        result = await gw.on_json_message(msg(type="SET_ENCODING", mode="HEX"))

        assert result.outbound_json == ({"type": "DRAFT", "text": ""},)
        assert gw.session is not None and gw.session.runtime is not None
        assert gw.session.runtime.state.encoding is EncodingMode.HEX

    asyncio.run(scenario())


def test_dictation_final_auto_submits(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.connect()
        await settle()

        await gw.on_json_message(msg(type="DICTATION_TOGGLE"))
        result = await gw.on_json_message(msg(type="DICTATION_FINAL", text="led on"))

        assert {"type": "DICTATION", "active": False} in result.outbound_json
        assert {"type": "DRAFT", "text": "led on"} in result.outbound_json
        assert transport.writes == [b"led on\r\n"]

    asyncio.run(scenario())


def test_disconnect_message(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        await gw.connect()
        await settle()

        await gw.on_json_message(msg(type="DISCONNECT"))

        assert gw.session is not None and gw.session.runtime is not None
        assert gw.session.runtime.state.connection is ConnectionState.DISCONNECTED

    asyncio.run(scenario())


# ---------------------------------------------------------------------
# Malformed input
# ---------------------------------------------------------------------

@pytest.mark.parametrize(
    "payload, event_type",
    [
        ("{not json", "JSON_DECODE_ERROR"),
        (json.dumps({"type": "REBOOT"}), "UNKNOWN_MESSAGE_TYPE"),
        (json.dumps(["SEND"]), "UNKNOWN_MESSAGE_TYPE"),
        (json.dumps({"type": "SET_NEWLINE", "mode": "crcr"}), "INVALID_MESSAGE"),
        (json.dumps({"type": "SEND"}), "INVALID_MESSAGE"),
    ],
)
def test_bad_messages_are_logged_and_dropped(
    transport: FakeTransport,
    monkeypatch: pytest.MonkeyPatch,
    payload: str,
    event_type: str,
) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()
        result = await gw.on_json_message(payload)
        assert result.outbound_json == ()

    asyncio.run(scenario())

    assert emitted[-1]["event_type"] == event_type


def test_strict_invalid_transition_does_not_escape(
    transport: FakeTransport,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(gateway_mod, "log_event", emitted.append)

    async def scenario() -> None:
        transport.gate = asyncio.Event()
        gw = make_gateway(transport, strict_transitions=True)
        await gw.on_ws_connect()
        await gw.on_json_message(msg(type="CONNECT"))
        await gw.on_json_message(msg(type="CONNECT"))

    asyncio.run(scenario())

    assert emitted[-1]["event_type"] == "INVALID_TRANSITION_RAISED"


# ---------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------

def test_public_operations_drive_the_session(transport: FakeTransport) -> None:
    async def scenario() -> None:
        gw = make_gateway(transport)
        await gw.on_ws_connect()

        await gw.connect("loop://")
        await settle()
        assert gw.can_send is True

        await gw.set_newline_mode(NewlineMode.NONE)
        await gw.send("AT")
        await gw.set_encoding_mode(EncodingMode.HEX)
        await gw.send("0d 0a")
        await gw.disconnect()

        assert transport.writes == [b"AT", b"\r\n"]
        assert gw.can_send is False
        assert gw.session is not None
        assert gw.session.renderer.text().endswith("AT\n0D 0A\n")

    asyncio.run(scenario())
