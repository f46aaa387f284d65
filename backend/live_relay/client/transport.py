"""
Client WebSocket transport.

- One connection per client session
- Outbound envelopes go through a queue drained by one writer task,
  so send order == call order
- send_json() is synchronous and drops (does not queue) while not open
- Inbound frames are handed to `on_message` unparsed
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from typing import Any, Callable, Optional

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import ConnectionClosed

from live_relay.observability.logger import log_event, make_event


class WebSocketTransport:
    """Duplex JSON envelope channel to the relay."""

    def __init__(
        self,
        url: str,
        *,
        on_open: Callable[[], None],
        on_message: Callable[[str | bytes], None],
        on_close: Callable[[], None],
    ) -> None:
        self._url = url
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close

        self._ws: Optional[ClientConnection] = None
        self._out: asyncio.Queue[str] = asyncio.Queue()
        self._recv_task: Optional[asyncio.Task[None]] = None
        self._send_task: Optional[asyncio.Task[None]] = None
        self._closed_notified = True

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def open(self) -> None:
        """
        Connect and start the reader/writer tasks.

        Raises:
            OSError / websockets errors when the relay is unreachable.
        """
        self._ws = await ws_connect(self._url, max_size=2**22)
        self._closed_notified = False
        self._recv_task = asyncio.create_task(self._recv_loop())
        self._send_task = asyncio.create_task(self._send_loop())
        log_event(make_event(
            "CLIENT_TRANSPORT_OPEN",
            url=self._url,
        ))
        try:
            self._on_open()
        except Exception:
            await self.close()
            raise

    def send_json(self, msg: dict[str, Any]) -> None:
        if self._ws is None:
            return
        self._out.put_nowait(json.dumps(msg))

    async def close(self) -> None:
        """Close the socket. Idempotent."""
        ws, self._ws = self._ws, None
        tasks = [t for t in (self._send_task, self._recv_task) if t is not None]
        self._send_task = self._recv_task = None

        for task in tasks:
            if task is not asyncio.current_task():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        # Unsent envelopes belong to the dead connection
        while not self._out.empty():
            self._out.get_nowait()

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                log_event(make_event(
                    "CLIENT_TRANSPORT_ERROR",
                    stage="close",
                    error=repr(e),
                ))
        self._notify_closed()

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    async def _send_loop(self) -> None:
        while True:
            raw = await self._out.get()
            ws = self._ws
            if ws is None:
                return
            try:
                await ws.send(raw)
            except ConnectionClosed:
                return

    async def _recv_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return

        try:
            async for raw in ws:
                self._on_message(raw)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed:
            pass
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event(make_event(
                "CLIENT_TRANSPORT_ERROR",
                stage="recv",
                error=repr(e),
            ))

        # Remote side went away
        await self.close()

    def _notify_closed(self) -> None:
        if self._closed_notified:
            return
        self._closed_notified = True
        log_event(make_event(
            "CLIENT_TRANSPORT_CLOSED",
            url=self._url,
        ))
        self._on_close()
