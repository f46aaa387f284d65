"""
Client session controller.

State: {disconnected, connecting, connected} x {mic off/on} x {speaking}.

Responsibilities:
- Owns the transport, microphone capture and speaker output lifecycles
- Routes inbound server envelopes -> playback buffer / transcript / flags
- Barge-in: flush playback, suppress late audio, tell the relay

Timing:
- `clock` returns monotonic seconds
- `schedule(delay_s, fn)` returns a handle with cancel(); defaults to
  the running loop's call_later
Both are injectable so tests drive time explicitly.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from live_relay.audio import codec
from live_relay.audio.capture import CapturePipeline
from live_relay.audio.playback import PlaybackBuffer, SpeakerOutput
from live_relay.client.transport import WebSocketTransport
from live_relay.constants import (
    ACTIVITY_LEVEL_EXPONENT,
    ACTIVITY_LEVEL_GAIN,
    BARGE_IN_DEBOUNCE_MS,
    BARGE_IN_IGNORE_AUDIO_MS,
    OUTPUT_LEVEL_DECAY,
    OUTPUT_LEVEL_GAIN,
    SPEAKING_GRACE_MS,
    STATUS_UPSTREAM_CLOSED,
    STATUS_UPSTREAM_OPEN,
    ms_to_seconds,
)
from live_relay.languages import (
    DEFAULT_PERSONA,
    build_system_prompt,
    get_language,
    prefix_reply_language,
    reassert_language_text,
)
from live_relay.observability.logger import log_event, make_event
from live_relay.protocol.envelopes import (
    client_barge,
    client_start,
    client_text,
    parse_server_envelope,
)


class ConnectionPhase(str, Enum):
    """Transport + upstream readiness, as seen by the client."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"   # transport opening or upstream not yet open
    CONNECTED = "connected"     # status{upstream_open} received


@dataclass(frozen=True)
class TranscriptEntry:
    role: str   # "user" | "assistant"
    text: str


@dataclass
class ClientState:
    """Mutable UI-facing state. Only the controller writes it."""
    phase: ConnectionPhase = ConnectionPhase.DISCONNECTED
    mic_on: bool = False
    speaking: bool = False
    language: str = "auto"
    transcript: list[TranscriptEntry] = field(default_factory=list)


class Transport(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def open(self) -> None: ...

    def send_json(self, msg: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


def _call_later(delay_s: float, fn: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay_s, fn)


class ClientSessionController:
    """One controller per client session (UI window or CLI process)."""

    def __init__(
        self,
        *,
        url: str,
        language: str = "auto",
        persona: str = DEFAULT_PERSONA,
        playback: Optional[PlaybackBuffer] = None,
        transport_factory: Callable[..., Transport] = WebSocketTransport,
        capture_factory: Callable[..., Any] = CapturePipeline,
        speaker_factory: Callable[[PlaybackBuffer], Any] = SpeakerOutput,
        clock: Callable[[], float] = time.monotonic,
        schedule: Callable[[float, Callable[[], None]], TimerHandle] = _call_later,
    ) -> None:
        self._url = url
        self._persona = persona
        self._transport_factory = transport_factory
        self._capture_factory = capture_factory
        self._speaker_factory = speaker_factory
        self._clock = clock
        self._schedule = schedule

        self.state = ClientState(language=get_language(language).code)
        self.playback = playback or PlaybackBuffer()
        self.level_out: float = 0.0

        self._transport: Optional[Transport] = None
        self._capture: Any = None
        self._speaker: Any = None

        self._last_barge_at: Optional[float] = None
        self._ignore_audio_until: float = 0.0
        self._speaking_timer: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def level_in(self) -> float:
        return self._capture.level_in if self._capture is not None else 0.0

    @property
    def activity(self) -> float:
        """Combined in/out activity in [0, 1] (cosmetic)."""
        level = max(self.level_in, self.level_out)
        return min(1.0, (level * ACTIVITY_LEVEL_GAIN) ** ACTIVITY_LEVEL_EXPONENT)

    @property
    def connected(self) -> bool:
        return self.state.phase is ConnectionPhase.CONNECTED

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """disconnected -> connecting; `start` is sent once the transport opens."""
        if self.state.phase is not ConnectionPhase.DISCONNECTED:
            return

        self.state.phase = ConnectionPhase.CONNECTING
        self._log("CLIENT_CONNECT", url=self._url, language=self.state.language)

        transport = self._transport_factory(
            self._url,
            on_open=self.on_transport_open,
            on_message=self.handle_message,
            on_close=self.on_transport_closed,
        )
        self._transport = transport

        try:
            await transport.open()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("CLIENT_TRANSPORT_ERROR", stage="open", error=repr(e))
            self._transport = None
            # open may fail after the socket is up (on_open raised)
            await transport.close()
            self._reset_after_close()
            self._append("assistant", f"⚠️ {e}")

    async def disconnect(self) -> None:
        """Stop capture and close the transport; in-flight replies are abandoned."""
        self.stop_mic()
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.close()
        self._reset_after_close()
        self._log("CLIENT_DISCONNECT")

    def on_transport_open(self) -> None:
        self._speaker = self._speaker_factory(self.playback)
        self._speaker.start()

        lang = get_language(self.state.language)
        self._send(client_start(build_system_prompt(lang, self._persona), lang.code))

    def on_transport_closed(self) -> None:
        self._transport = None
        self.stop_mic()
        self._reset_after_close()

    def _reset_after_close(self) -> None:
        self.state.phase = ConnectionPhase.DISCONNECTED
        self.state.speaking = False
        self._cancel_speaking_timer()

        speaker, self._speaker = self._speaker, None
        if speaker is not None:
            speaker.close()
        self.level_out = 0.0

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def handle_message(self, raw: str | bytes) -> None:
        msg = parse_server_envelope(raw)
        if msg is None:
            return

        msg_type = msg["type"]
        if msg_type == "status":
            self._on_status(msg["value"])
        elif msg_type == "audio":
            self._on_audio(msg["base64"])
        elif msg_type == "text":
            self._append("assistant", msg["text"])
        elif msg_type == "turnComplete":
            self._on_turn_complete()
        elif msg_type == "error":
            self._log("CLIENT_SERVER_ERROR", error=msg["error"])
            self._append("assistant", f"⚠️ {msg['error']}")

    def _on_status(self, value: str) -> None:
        if value == STATUS_UPSTREAM_OPEN:
            self.state.phase = ConnectionPhase.CONNECTED
            lang = get_language(self.state.language)
            if not lang.is_auto:
                self._send(client_text(reassert_language_text(lang)))
        elif value == STATUS_UPSTREAM_CLOSED:
            self._cancel_speaking_timer()
            self.state.speaking = False

    def _on_audio(self, blob: str) -> None:
        if self._clock() < self._ignore_audio_until:
            return

        chunk = codec.decode(blob)
        self._cancel_speaking_timer()
        self.state.speaking = True
        self.playback.enqueue(chunk)
        self.level_out = self.level_out * OUTPUT_LEVEL_DECAY + codec.rms(chunk) * OUTPUT_LEVEL_GAIN

    def _on_turn_complete(self) -> None:
        self._cancel_speaking_timer()
        self._speaking_timer = self._schedule(
            ms_to_seconds(SPEAKING_GRACE_MS), self._end_speaking
        )

    def _end_speaking(self) -> None:
        self._speaking_timer = None
        self.state.speaking = False

    def _cancel_speaking_timer(self) -> None:
        timer, self._speaking_timer = self._speaking_timer, None
        if timer is not None:
            timer.cancel()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def send_text(self, text: str) -> bool:
        """
        Send a typed user turn.

        The transcript records the text as typed; the reply-language prefix
        only goes on the wire.
        """
        if not self.connected or not text.strip():
            return False

        lang = get_language(self.state.language)
        self._append("user", text)
        self._send(client_text(prefix_reply_language(text, lang), lang.code))
        return True

    def barge_in(self) -> bool:
        """Interrupt assistant speech. Returns False when debounced."""
        now = self._clock()
        if (
            self._last_barge_at is not None
            and now - self._last_barge_at < ms_to_seconds(BARGE_IN_DEBOUNCE_MS)
        ):
            return False
        self._last_barge_at = now

        self.playback.flush()
        self._ignore_audio_until = now + ms_to_seconds(BARGE_IN_IGNORE_AUDIO_MS)
        self._send(client_barge())
        self._cancel_speaking_timer()
        self.state.speaking = False

        self._log("CLIENT_BARGE_IN")
        return True

    # ------------------------------------------------------------------
    # Microphone
    # ------------------------------------------------------------------

    def toggle_mic(self) -> None:
        if self.state.mic_on:
            self.stop_mic()
        else:
            self.start_mic()

    def start_mic(self) -> None:
        """Open the microphone; only allowed while connected."""
        if not self.connected or self._capture is not None:
            return
        capture = self._capture_factory(
            transport=self._transport,
            is_speaking=lambda: self.state.speaking,
            on_barge_in=self.barge_in,
        )
        try:
            capture.start()
        except Exception as e:  # pylint: disable=broad-exception-caught
            self._log("CLIENT_MIC_ERROR", error=repr(e))
            self._append("assistant", f"⚠️ {e}")
            return
        self._capture = capture
        self.state.mic_on = True

    def stop_mic(self) -> None:
        """Release the microphone. Idempotent."""
        capture, self._capture = self._capture, None
        self.state.mic_on = False
        if capture is not None:
            capture.stop()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send(self, msg: dict[str, Any]) -> None:
        if self._transport is not None:
            self._transport.send_json(msg)

    def _append(self, role: str, text: str) -> None:
        self.state.transcript.append(TranscriptEntry(role=role, text=text))

    def _log(self, event_type: str, **fields: Any) -> None:
        log_event(make_event(event_type, **fields))
