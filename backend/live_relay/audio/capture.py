"""
Microphone capture pipeline.

Per block (device-native rate, CAPTURE_BLOCK_SIZE samples):
1. rms -> smoothed input level (cosmetic)
2. resample to 16 kHz, encode, send an `audio` envelope
   (dropped, not queued, when the transport is not open)
3. barge-in trigger when the assistant is speaking and the block is loud

The device callback runs on the PortAudio thread; block processing is
handed to the event loop so it never races the message handlers.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol

import numpy as np

from live_relay.audio import codec
from live_relay.constants import (
    AUDIO_CHANNELS,
    BARGE_IN_RMS_THRESHOLD,
    CAPTURE_BLOCK_SIZE,
    INPUT_LEVEL_DECAY,
    INPUT_LEVEL_GAIN,
    WIRE_INPUT_SAMPLE_RATE_HZ,
)
from live_relay.observability.logger import log_event, make_event
from live_relay.protocol.envelopes import client_audio


class EnvelopeSink(Protocol):
    """Minimal transport surface the capture pipeline needs."""

    @property
    def is_open(self) -> bool: ...

    def send_json(self, msg: dict[str, Any]) -> None: ...


class CapturePipeline:
    """
    Owns the microphone stream for one client session.

    Not thread-safe beyond the callback hand-off: process_block() must run
    on the event loop.
    """

    def __init__(
        self,
        *,
        transport: EnvelopeSink,
        is_speaking: Callable[[], bool],
        on_barge_in: Callable[[], None],
        device: Optional[int] = None,
        block_size: int = CAPTURE_BLOCK_SIZE,
    ) -> None:
        self._transport = transport
        self._is_speaking = is_speaking
        self._on_barge_in = on_barge_in
        self._device = device
        self._block_size = block_size

        self._stream: Any = None
        self.level_in: float = 0.0

    # ------------------------------------------------------------------
    # Block processing
    # ------------------------------------------------------------------

    def process_block(self, block: np.ndarray, sample_rate_hz: int) -> None:
        """Run the capture steps for one raw microphone block."""
        v = codec.rms(block)
        self.level_in = self.level_in * INPUT_LEVEL_DECAY + v * INPUT_LEVEL_GAIN

        if not self._transport.is_open:
            return

        f16 = codec.resample(block, sample_rate_hz, WIRE_INPUT_SAMPLE_RATE_HZ)
        self._transport.send_json(client_audio(codec.encode(f16)))

        if self._is_speaking() and v > BARGE_IN_RMS_THRESHOLD:
            self._on_barge_in()

    # ------------------------------------------------------------------
    # Device lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        Open the microphone at its native rate. Idempotent.

        Must be called from a running event loop.
        """
        if self._stream is not None:
            return

        # PortAudio is loaded on import
        import sounddevice as sd  # pylint: disable=import-outside-toplevel

        loop = asyncio.get_running_loop()
        info = sd.query_devices(self._device, "input")
        sample_rate_hz = int(info["default_samplerate"])

        def on_audio_in(indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
            block = np.array(indata[:, 0], dtype=np.float32)
            loop.call_soon_threadsafe(self.process_block, block, sample_rate_hz)

        self._stream = sd.InputStream(
            samplerate=sample_rate_hz,
            channels=AUDIO_CHANNELS,
            dtype="float32",
            blocksize=self._block_size,
            device=self._device,
            callback=on_audio_in,
        )
        self._stream.start()

        log_event(make_event(
            "CLIENT_MIC_STARTED",
            sample_rate_hz=sample_rate_hz,
            block_size=self._block_size,
        ))

    def stop(self) -> None:
        """Release the microphone. No-op when already stopped."""
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        self.level_in = 0.0
        log_event(make_event("CLIENT_MIC_STOPPED"))

    @property
    def active(self) -> bool:
        """True while the microphone stream is open."""
        return self._stream is not None
