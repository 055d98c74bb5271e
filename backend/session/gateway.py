"""
Session gateway.

Responsibilities:
- Owns TerminalSession lifecycle
- Public session boundary: connect / disconnect / send / mode changes /
  dictation results, each turned into one runtime event
- Routes inbound JSON control messages -> session events
- Recovers every failure at this boundary (status line, notice, or log);
  nothing propagates to the presentation layer

NOT responsible for:
- Any state machine logic (reducer)
- Encoding / decoding (codec)
- Transport I/O (transport adapter, driven by the runtime)
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING

from uuid import uuid4

from adapters.transport.base import Transport
from adapters.transport.serial_transport import SerialTransport
from observability.logger import log_event
from orchestrator.enums.encoding import EncodingMode
from orchestrator.enums.newline import NewlineMode
from orchestrator.events import (
    AutoSubmitChanged,
    ClearRequested,
    ConnectRequested,
    DictationError,
    DictationFinal,
    DictationPartial,
    DictationToggled,
    DisconnectRequested,
    DraftChanged,
    EncodingModeChanged,
    Event,
    EventType,
    NewlineModeChanged,
    SendRequested,
)
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import TerminalState
from session.connection_state import InvalidTransition
from session.terminal_session import TerminalSession

if TYPE_CHECKING:
    from config import AppConfig

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"term_{uuid4().hex[:12]}"


TransportFactory = Callable[["AppConfig"], Transport]


def _serial_transport(config: AppConfig) -> Transport:
    return SerialTransport(baudrate=config.baudrate)


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """
    One gateway == one terminal session.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        transport_factory: TransportFactory = _serial_transport,
    ) -> None:
        self._config = config
        self._transport_factory = transport_factory
        self.session: TerminalSession | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Create the session. Called when a client attaches."""
        session_id = _new_session_id()

        self.session = TerminalSession(session_id=session_id)
        self.session.attach_transport(self._transport_factory(self._config))

        runtime = Runtime(
            initial_state=TerminalState(
                encoding=self._config.encoding_mode,
                newline=self._config.newline_mode,
                auto_submit_dictation=self._config.auto_submit_dictation,
            ),
            context=RuntimeExecutionContext(session=self.session),
            strict_transitions=self._config.strict_transitions,
        )
        self.session.attach_runtime(runtime)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_STARTED",
            "session_id": session_id,
        })

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "config": {
                "device": self._config.device,
                "newline_mode": self._config.newline_mode.value,
                "encoding_mode": self._config.encoding_mode.value,
                "auto_submit_dictation": self._config.auto_submit_dictation,
            },
            "can_send": False,
        }

        return GatewayResult(outbound_json=(init_msg,))

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Disconnect and release the transport. Called when the client leaves."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "CLOSE_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        session = self.session
        if session.runtime is not None:
            await session.runtime.shutdown()
        session.detach_transport()
        session.close()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "SESSION_ENDED",
            **session.log_context(),
            "reason": reason,
        })

        return GatewayResult(outbound_json=session.drain_control())

    # ------------------------------------------------------------------
    # Public session operations
    # ------------------------------------------------------------------

    async def connect(self, identity: str | None = None) -> None:
        await self._dispatch(
            ConnectRequested(
                event_type=EventType.CONNECT_REQUESTED,
                ts_ms=_now_ms(),
                identity=identity or self._config.device,
            )
        )

    async def disconnect(self) -> None:
        await self._dispatch(
            DisconnectRequested(event_type=EventType.DISCONNECT_REQUESTED, ts_ms=_now_ms())
        )

    async def send(self, text: str) -> None:
        await self._dispatch(
            SendRequested(event_type=EventType.SEND_REQUESTED, ts_ms=_now_ms(), text=text)
        )

    async def set_encoding_mode(self, mode: EncodingMode) -> None:
        await self._dispatch(
            EncodingModeChanged(
                event_type=EventType.ENCODING_MODE_CHANGED, ts_ms=_now_ms(), mode=mode
            )
        )

    async def set_newline_mode(self, mode: NewlineMode) -> None:
        await self._dispatch(
            NewlineModeChanged(
                event_type=EventType.NEWLINE_MODE_CHANGED, ts_ms=_now_ms(), mode=mode
            )
        )

    @property
    def can_send(self) -> bool:
        if self.session is None or self.session.runtime is None:
            return False
        return self.session.runtime.can_send

    # ------------------------------------------------------------------
    # JSON control messages
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to session events."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.session.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        if not isinstance(data, dict):
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": None,
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        try:
            event = self._event_from_message(data)
        except (KeyError, TypeError, ValueError) as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_MESSAGE",
                "session_id": self.session.session_id,
                "msg_type": data.get("type"),
                "error": str(e),
            })
            return GatewayResult()

        if event is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": data.get("type"),
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        await self._dispatch(event)
        return GatewayResult(outbound_json=self._drain_control_out())

    def _event_from_message(self, data: dict[str, Any]) -> Event | None:
        msg_type = data.get("type")
        ts_ms = _now_ms()

        if msg_type == "CONNECT":
            return ConnectRequested(
                event_type=EventType.CONNECT_REQUESTED,
                ts_ms=ts_ms,
                identity=str(data.get("device") or self._config.device),
            )
        if msg_type == "DISCONNECT":
            return DisconnectRequested(event_type=EventType.DISCONNECT_REQUESTED, ts_ms=ts_ms)
        if msg_type == "SEND":
            return SendRequested(
                event_type=EventType.SEND_REQUESTED, ts_ms=ts_ms, text=str(data["text"])
            )
        if msg_type == "DRAFT":
            return DraftChanged(
                event_type=EventType.DRAFT_CHANGED, ts_ms=ts_ms, text=str(data["text"])
            )
        if msg_type == "CLEAR":
            return ClearRequested(event_type=EventType.CLEAR_REQUESTED, ts_ms=ts_ms)
        if msg_type == "SET_ENCODING":
            return EncodingModeChanged(
                event_type=EventType.ENCODING_MODE_CHANGED,
                ts_ms=ts_ms,
                mode=EncodingMode(str(data["mode"]).lower()),
            )
        if msg_type == "SET_NEWLINE":
            return NewlineModeChanged(
                event_type=EventType.NEWLINE_MODE_CHANGED,
                ts_ms=ts_ms,
                mode=NewlineMode(str(data["mode"]).lower()),
            )
        if msg_type == "SET_AUTO_SUBMIT":
            return AutoSubmitChanged(
                event_type=EventType.AUTO_SUBMIT_CHANGED,
                ts_ms=ts_ms,
                enabled=bool(data["enabled"]),
            )
        if msg_type == "DICTATION_TOGGLE":
            return DictationToggled(event_type=EventType.DICTATION_TOGGLED, ts_ms=ts_ms)
        if msg_type == "DICTATION_PARTIAL":
            return DictationPartial(
                event_type=EventType.DICTATION_PARTIAL, ts_ms=ts_ms, text=str(data["text"])
            )
        if msg_type == "DICTATION_FINAL":
            return DictationFinal(
                event_type=EventType.DICTATION_FINAL, ts_ms=ts_ms, text=str(data["text"])
            )
        if msg_type == "DICTATION_ERROR":
            return DictationError(
                event_type=EventType.DICTATION_ERROR,
                ts_ms=ts_ms,
                reason=str(data.get("reason", "unknown")),
            )
        return None

    # ------------------------------------------------------------------
    # Runtime dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, event: Event) -> None:
        """
        Forward event into runtime.

        InvalidTransition only escapes the runtime in strict mode; the
        gateway still keeps it away from the presentation layer.
        """
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_WITHOUT_SESSION",
                "dropped_event": event.event_type.value,
            })
            return

        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"

        try:
            await runtime.handle_event(event)
        except InvalidTransition as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "INVALID_TRANSITION_RAISED",
                "session_id": self.session.session_id,
                "error": str(e),
            })

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.session is None:
            return ()
        return self.session.drain_control()
