"""
Relay session controller.

Responsibilities:
- Owns zero-or-one upstream session per client connection
- Routes inbound client envelopes -> upstream calls
- Pumps upstream events -> outbound envelopes, in arrival order
- Document QA augmentation of text turns (with raw-text fallback)
- Converts every recoverable failure into an `error` envelope or fallback

NOT responsible for:
- Socket I/O (the route drains `outbound` with a single writer task)
- Vendor specifics (adapters own those)
- Process-wide state (config is passed in, never mutated)
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Optional, TYPE_CHECKING
from uuid import uuid4

from live_relay.adapters.docqa.store import DocumentStore
from live_relay.adapters.upstream.base import (
    GenerationSettings,
    UpstreamConnector,
    UpstreamSession,
)
from live_relay.adapters.upstream.events import UpstreamEvent, UpstreamEventType
from live_relay.constants import (
    DOCUMENT_QA_TOOL_NAME,
    ERR_AUDIO_SEND_FAILED,
    ERR_BARGE_FAILED,
    ERR_INVALID_JSON,
    ERR_OPEN_FAILED,
    ERR_SESSION_NOT_STARTED,
    ERR_TEXT_SEND_FAILED,
    ERR_UPSTREAM_GENERIC,
    STATUS_UPSTREAM_CLOSED,
    STATUS_UPSTREAM_OPEN,
    TOOL_RESULT_EMPTY_ANSWER,
    TOOL_RESULT_FOLLOW_UP,
    TOOL_RESULT_TEMPLATE,
    UPSTREAM_AUDIO_MIME_TYPE,
    tool_status,
)
from live_relay.languages import language_hint
from live_relay.observability.logger import log_event, make_event
from live_relay.observability.metrics import timed
from live_relay.protocol import envelopes
from live_relay.protocol.envelopes import (
    AudioEnvelope,
    BargeEnvelope,
    InvalidJSON,
    StartEnvelope,
    StopEnvelope,
    TextEnvelope,
    UnknownEnvelope,
)

if TYPE_CHECKING:
    from live_relay.config import AppConfig


def _new_session_id() -> str:
    return f"relay_{uuid4().hex[:12]}"


def _message(exc: BaseException, fallback: str) -> str:
    return str(exc) or fallback


class RelaySession:
    """
    One relay session == one client connection.

    Messages are handled strictly in order: the route awaits
    `on_json_message` before reading the next frame.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        connector: UpstreamConnector,
        documents: Optional[DocumentStore] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self._config = config
        self._connector = connector
        self._documents = documents
        self.session_id = session_id or _new_session_id()

        self.outbound: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

        self._upstream: Optional[UpstreamSession] = None
        self._pump: Optional[asyncio.Task[None]] = None

    @property
    def upstream(self) -> Optional[UpstreamSession]:
        return self._upstream

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> None:
        self._log("RELAY_CONNECTED")

    async def on_ws_disconnect(self, reason: Optional[str] = None) -> None:
        """Best-effort upstream close; nothing is reported to the client."""
        await self._close_upstream()
        self._log("RELAY_DISCONNECTED", reason=reason)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str | bytes) -> None:
        try:
            env = envelopes.parse_client_envelope(payload)
        except InvalidJSON as e:
            self._log(
                "JSON_DECODE_ERROR",
                error=str(e),
                payload_preview=str(payload[:100]),
            )
            self._emit(envelopes.error(ERR_INVALID_JSON))
            return
        except UnknownEnvelope as e:
            self._log("UNKNOWN_MESSAGE_TYPE", error=str(e))
            self._emit(envelopes.error(str(e)))
            return

        if isinstance(env, StartEnvelope):
            await self._handle_start(env)
            return

        upstream = self._upstream
        if upstream is None:
            self._emit(envelopes.error(ERR_SESSION_NOT_STARTED))
            return

        if isinstance(env, AudioEnvelope):
            await self._handle_audio(upstream, env)
        elif isinstance(env, TextEnvelope):
            await self._handle_text(upstream, env)
        elif isinstance(env, BargeEnvelope):
            await self._handle_barge(upstream)
        elif isinstance(env, StopEnvelope):
            pass  # reserved

    async def _handle_start(self, env: StartEnvelope) -> None:
        if self._upstream is not None:
            self._log("UPSTREAM_REPLACED")
        await self._close_upstream()

        generation = GenerationSettings(
            voice=env.voice or self._config.gemini_voice,
            enable_search=env.enable_search,
        )
        self._log(
            "UPSTREAM_OPEN_REQUESTED",
            model=self._config.gemini_model,
            language=env.language,
        )

        try:
            with timed("upstream_open_ms", session_id=self.session_id):
                upstream = await self._connector.open(
                    model=self._config.gemini_model,
                    system_instruction=env.system or self._config.default_system,
                    generation=generation,
                )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_OPEN_FAILED", exception=type(e).__name__, message=str(e))
            self._emit(envelopes.error(_message(e, ERR_OPEN_FAILED)))
            return

        self._upstream = upstream
        self._pump = asyncio.create_task(self._pump_events(upstream))

    async def _handle_audio(self, upstream: UpstreamSession, env: AudioEnvelope) -> None:
        try:
            await upstream.send_audio(env.base64, UPSTREAM_AUDIO_MIME_TYPE)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_SEND_FAILED", kind="audio", message=str(e))
            self._emit(envelopes.error(_message(e, ERR_AUDIO_SEND_FAILED)))

    async def _handle_text(self, upstream: UpstreamSession, env: TextEnvelope) -> None:
        answer = await self._ask_document(env)
        if answer is not None and await self._inject_tool_result(upstream, answer):
            return

        try:
            await upstream.send_text(env.text)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_SEND_FAILED", kind="text", message=str(e))
            self._emit(envelopes.error(_message(e, ERR_TEXT_SEND_FAILED)))

    async def _ask_document(self, env: TextEnvelope) -> Optional[str]:
        """
        Grounded answer for a text turn, or None to forward the raw text.

        On success the answer is also emitted to the client as `text`.
        """
        if self._documents is None or self._documents.qa is None:
            return None

        doc = await self._documents.get()
        if doc is None:
            return None

        self._emit(envelopes.status(tool_status(DOCUMENT_QA_TOOL_NAME)))
        try:
            with timed("doc_qa_ask_ms", session_id=self.session_id):
                answer = await self._documents.qa.ask(
                    doc, env.text, language_hint(env.language)
                )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("DOC_QA_FALLBACK", exception=type(e).__name__, message=str(e))
            return None

        if answer:
            self._emit(envelopes.text(answer))
        return answer

    async def _inject_tool_result(self, upstream: UpstreamSession, answer: str) -> bool:
        """False when injection failed and the raw text should go instead."""
        try:
            await upstream.send_tool_result(
                TOOL_RESULT_TEMPLATE.format(answer=answer or TOOL_RESULT_EMPTY_ANSWER),
                TOOL_RESULT_FOLLOW_UP,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("TOOL_RESULT_FALLBACK", exception=type(e).__name__, message=str(e))
            return False
        return True

    async def _handle_barge(self, upstream: UpstreamSession) -> None:
        try:
            await upstream.cancel_response()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_SEND_FAILED", kind="barge", message=str(e))
            self._emit(envelopes.error(_message(e, ERR_BARGE_FAILED)))
            return

        self._log("BARGE_IN")
        # Client-side cue only; the upstream session stays open.
        self._emit(envelopes.status(STATUS_UPSTREAM_CLOSED))

    # ------------------------------------------------------------------
    # Upstream -> client
    # ------------------------------------------------------------------

    async def _pump_events(self, upstream: UpstreamSession) -> None:
        try:
            async for event in upstream.events():
                self._forward(upstream, event)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_EVENT_ERROR", exception=type(e).__name__, message=str(e))
            self._emit(envelopes.error(_message(e, ERR_UPSTREAM_GENERIC)))
            if self._upstream is upstream:
                self._upstream = None
                self._emit(envelopes.status(STATUS_UPSTREAM_CLOSED))

        # The stream ended on its own; the vendor session still needs releasing
        await self._release(upstream)

    def _forward(self, upstream: UpstreamSession, event: UpstreamEvent) -> None:
        kind = event.event_type

        if kind is UpstreamEventType.OPENED:
            self._emit(envelopes.status(STATUS_UPSTREAM_OPEN))
        elif kind is UpstreamEventType.AUDIO_CHUNK and event.audio_base64:
            self._emit(envelopes.audio(event.audio_base64))
        elif kind is UpstreamEventType.TEXT_CHUNK and event.text:
            self._emit(envelopes.text(event.text))
        elif kind is UpstreamEventType.TURN_COMPLETE:
            self._emit(envelopes.turn_complete())
        elif kind is UpstreamEventType.ERRORED:
            self._log("UPSTREAM_EVENT_ERROR", message=event.message)
            self._emit(envelopes.error(event.message or ERR_UPSTREAM_GENERIC))
        elif kind is UpstreamEventType.CLOSED:
            if self._upstream is upstream:
                self._upstream = None
            self._emit(envelopes.status(STATUS_UPSTREAM_CLOSED))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _close_upstream(self) -> None:
        """Stop forwarding, then close. Close failures are swallowed."""
        upstream, self._upstream = self._upstream, None
        pump, self._pump = self._pump, None

        if pump is not None and not pump.done():
            if upstream is None:
                # Upstream already ended; the pump is releasing it
                await pump
            else:
                pump.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pump

        if upstream is not None:
            await self._release(upstream)

    async def _release(self, upstream: UpstreamSession) -> None:
        try:
            await upstream.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("UPSTREAM_CLOSE_FAILED", exception=type(e).__name__, message=str(e))

    def _emit(self, envelope: dict[str, Any]) -> None:
        self.outbound.put_nowait(envelope)

    def _log(self, event_type: str, **fields: Any) -> None:
        log_event(make_event(event_type, session_id=self.session_id, **fields))
