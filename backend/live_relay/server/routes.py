"""
Route registration for the live relay.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire RelaySession to the WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import contextlib
import json

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

from live_relay.observability.logger import log_event, make_event
from live_relay.session.relay import RelaySession

WS_CLIENT_PATH = "/ws/client"


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:  # pyright: ignore[reportUnusedFunction]
        return "Live relay server running."

    @app.get("/health")
    async def health() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.get("/config")
    async def client_config() -> dict[str, str]:  # pyright: ignore[reportUnusedFunction]
        return {"wsUrl": WS_CLIENT_PATH, "model": app.state.config.gemini_model}

    @app.websocket(WS_CLIENT_PATH)
    async def client_socket(ws: WebSocket) -> None:  # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        relay = RelaySession(
            config=app.state.config,
            connector=app.state.connector,
            documents=app.state.documents,
        )
        writer = asyncio.create_task(_drain_outbound(ws, relay))

        try:
            await relay.on_ws_connect()

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(msg.get("code", 1000))

                if msg.get("text") is not None:
                    await relay.on_json_message(msg["text"])
                elif msg.get("bytes") is not None:
                    await relay.on_json_message(msg["bytes"])

        except WebSocketDisconnect:
            await relay.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event(make_event(
                "WS_FATAL_ERROR",
                session_id=relay.session_id,
                exception=type(exc).__name__,
                message=str(exc),
            ))
            await relay.on_ws_disconnect(reason="server_error")

        finally:
            writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await writer


async def _drain_outbound(ws: WebSocket, relay: RelaySession) -> None:
    """
    Single writer per connection.

    Envelopes reach the socket in the order the relay produced them.
    """
    while True:
        envelope = await relay.outbound.get()
        try:
            await ws.send_text(json.dumps(envelope))
        except (WebSocketDisconnect, RuntimeError):
            # Socket already closed; the reader side handles teardown
            return
