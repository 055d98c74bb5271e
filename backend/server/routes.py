"""
Route registration for the terminal API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pump session control messages to the client
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Iterable

from fastapi import WebSocket, WebSocketDisconnect, FastAPI

from observability.logger import log_event
from session.gateway import SessionGateway, GatewayResult
from session.terminal_session import TerminalSession


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(config=app.state.config)
        send_lock = asyncio.Lock()
        pump: asyncio.Task[None] | None = None

        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, send_lock, result)

            assert gateway.session is not None
            pump = asyncio.create_task(_pump_control(ws, send_lock, gateway.session))

            while True:
                text = await ws.receive_text()
                result = await gateway.on_json_message(text)
                await _flush_gateway_result(ws, send_lock, result)

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

        finally:
            if pump is not None:
                pump.cancel()
                await asyncio.gather(pump, return_exceptions=True)


async def _pump_control(
    ws: WebSocket,
    send_lock: asyncio.Lock,
    session: TerminalSession,
) -> None:
    """
    Forward control messages produced outside a client request.

    Inbound serial bytes and connect results arrive from the transport,
    so they are not tied to any websocket message.
    """
    while True:
        messages = await session.wait_control()
        async with send_lock:
            await _send_all(ws, messages)


async def _flush_gateway_result(
    ws: WebSocket,
    send_lock: asyncio.Lock,
    result: GatewayResult,
) -> None:
    async with send_lock:
        await _send_all(ws, result.outbound_json)


async def _send_all(ws: WebSocket, messages: Iterable[dict[str, Any]]) -> None:
    for msg in messages:
        await ws.send_text(json.dumps(msg))
