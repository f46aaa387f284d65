"""
Gemini Live upstream adapter.

Role in the system:
- Opens one `client.aio.live.connect` session per relay `start`.
- Pumps `session.receive()` into an asyncio queue of UpstreamEvents,
  preserving arrival order.
- Sends realtime audio, user turns and tool-result turns.

Architectural constraints:
- No retries, timers, or relay policy live here.
- Audio stays PCM16; only the base64 layer is removed/added at this edge.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
from typing import Any, AsyncIterator

from google import genai
from google.genai import types

from live_relay.adapters.upstream import events as ev
from live_relay.adapters.upstream.base import (
    GenerationSettings,
    UpstreamConnector,
    UpstreamSession,
)
from live_relay.adapters.upstream.events import UpstreamEvent, UpstreamEventType


def build_live_config(
    system_instruction: str,
    generation: GenerationSettings,
) -> types.LiveConnectConfig:
    """Translate relay settings into a LiveConnectConfig."""
    speech_config = None
    if generation.voice:
        speech_config = types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(
                    voice_name=generation.voice,
                )
            )
        )

    tools = None
    if generation.enable_search:
        tools = [types.Tool(google_search=types.GoogleSearch())]

    return types.LiveConnectConfig(
        response_modalities=[types.Modality.AUDIO],
        system_instruction=types.Content(
            parts=[types.Part(text=system_instruction)],
        ),
        temperature=generation.temperature,
        top_p=generation.top_p,
        speech_config=speech_config,
        tools=tools,
    )


class GeminiLiveSession(UpstreamSession):
    """
    One live Gemini conversation.

    Design:
    - One reader task per session
    - Events are queued, never dropped, except audio/text of a turn whose
      response was cancelled
    """

    def __init__(self, *, connect_cm: Any, session: Any) -> None:
        self._connect_cm = connect_cm
        self._session = session

        self._queue: asyncio.Queue[UpstreamEvent] = asyncio.Queue()
        self._closing = False
        self._closed_emitted = False

        # True between the first chunk of a response and its turn end
        self._responding = False
        # True while the remainder of a cancelled response is discarded
        self._suppress = False

        self._queue.put_nowait(ev.opened())
        self._reader = asyncio.create_task(self._read_loop())

    # ------------------------------------------------------------------
    # Public API (UpstreamSession contract)
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[UpstreamEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if event.event_type is UpstreamEventType.CLOSED:
                return

    async def send_audio(self, audio_base64: str, mime_type: str) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=base64.b64decode(audio_base64), mime_type=mime_type)
        )

    async def send_text(self, text: str) -> None:
        await self._session.send_client_content(
            turns=types.Content(role="user", parts=[types.Part(text=text)]),
            turn_complete=True,
        )

    async def send_tool_result(self, result: str, follow_up: str) -> None:
        await self._session.send_client_content(
            turns=[
                types.Content(role="user", parts=[types.Part(text=result)]),
                types.Content(role="user", parts=[types.Part(text=follow_up)]),
            ],
            turn_complete=True,
        )

    async def cancel_response(self) -> None:
        """
        Discard the rest of the in-flight response.

        The Live API has no explicit cancel call; the user's barge-in audio
        keeps streaming and the server-side activity detection interrupts
        generation on its own. Until that interruption (or turn end) is
        reported, remaining chunks are dropped here.
        """
        if self._responding:
            self._suppress = True

    async def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        try:
            await self._connect_cm.__aexit__(None, None, None)
        finally:
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._emit_closed()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _read_loop(self) -> None:
        try:
            while not self._closing:
                received = 0
                # receive() stops after each turn_complete; loop for the next turn
                async for message in self._session.receive():
                    received += 1
                    self._translate(message)
                if received == 0:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            if not self._closing:
                self._queue.put_nowait(ev.errored(str(exc) or None))
        finally:
            self._emit_closed()

    def _translate(self, message: Any) -> None:
        content = message.server_content

        if content is not None and content.interrupted:
            self._end_turn()

        data = message.data
        if data and not self._suppress:
            self._responding = True
            self._queue.put_nowait(ev.audio_chunk(base64.b64encode(data).decode("ascii")))

        text = message.text
        if text and not self._suppress:
            self._responding = True
            self._queue.put_nowait(ev.text_chunk(text))

        if content is not None and content.turn_complete:
            self._end_turn()
            self._queue.put_nowait(ev.turn_complete())

    def _end_turn(self) -> None:
        self._responding = False
        self._suppress = False

    def _emit_closed(self) -> None:
        if self._closed_emitted:
            return
        self._closed_emitted = True
        self._queue.put_nowait(ev.closed())


class GeminiLiveConnector(UpstreamConnector):
    """Opens GeminiLiveSessions from one shared genai.Client."""

    def __init__(self, client: genai.Client) -> None:
        self._client = client

    async def open(
        self,
        *,
        model: str,
        system_instruction: str,
        generation: GenerationSettings,
    ) -> UpstreamSession:
        connect_cm = self._client.aio.live.connect(
            model=model,
            config=build_live_config(system_instruction, generation),
        )
        session = await connect_cm.__aenter__()
        return GeminiLiveSession(connect_cm=connect_cm, session=session)
