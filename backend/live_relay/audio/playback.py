"""
Playback buffer and speaker output.

Rules:
- enqueue / flush / pause / resume run on the event loop thread
- drain runs on the audio-clock thread (sounddevice callback)
- Every critical section is O(frame_size); drain never blocks on I/O
- Growth is unbounded; the upstream cannot outpace real time for long
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, Deque, Optional

import numpy as np

from live_relay.constants import (
    AUDIO_CHANNELS,
    PLAYBACK_FRAME_SIZE,
    WIRE_OUTPUT_SAMPLE_RATE_HZ,
)
from live_relay.observability.logger import log_event, make_event


class PlaybackBuffer:
    """
    FIFO of float32 sample chunks drained at a fixed clock rate.

    Chunk boundaries carry no meaning: drain() concatenates across them
    and zero-fills any shortfall.
    """

    def __init__(self) -> None:
        self._chunks: Deque[np.ndarray] = deque()
        self._lock = threading.Lock()
        self._paused = False

    # -------------------------
    # Producer side
    # -------------------------

    def enqueue(self, chunk: np.ndarray) -> None:
        """Append a chunk to the tail. Empty chunks are ignored."""
        if len(chunk) == 0:
            return
        data = np.asarray(chunk, dtype=np.float32)
        with self._lock:
            self._chunks.append(data)

    def flush(self) -> None:
        """Drop all queued audio. Used by barge-in."""
        with self._lock:
            self._chunks.clear()

    def pause(self) -> None:
        """Drain outputs silence and leaves the queue untouched."""
        self._paused = True

    def resume(self) -> None:
        """Resume draining queued audio."""
        self._paused = False

    # -------------------------
    # Consumer side (audio clock)
    # -------------------------

    def drain(self, frame_size: int) -> np.ndarray:
        """
        Return exactly `frame_size` samples.

        Copies from the head of the queue, discards emptied chunks,
        pads with silence when the queue runs dry.
        """
        out = np.zeros(frame_size, dtype=np.float32)
        if self._paused:
            return out

        filled = 0
        with self._lock:
            while filled < frame_size and self._chunks:
                head = self._chunks[0]
                take = min(frame_size - filled, len(head))
                out[filled:filled + take] = head[:take]
                filled += take
                if take == len(head):
                    self._chunks.popleft()
                else:
                    self._chunks[0] = head[take:]
        return out

    # -------------------------
    # Introspection helpers
    # -------------------------

    @property
    def paused(self) -> bool:
        """True while drain() outputs silence."""
        return self._paused

    def __len__(self) -> int:
        with self._lock:
            return sum(len(c) for c in self._chunks)

    def is_empty(self) -> bool:
        """Check if no samples are queued."""
        with self._lock:
            return not self._chunks

    def snapshot(self) -> dict[str, int | bool]:
        """Lightweight snapshot for logging."""
        with self._lock:
            return {
                "chunks": len(self._chunks),
                "samples": sum(len(c) for c in self._chunks),
                "paused": self._paused,
            }


class SpeakerOutput:
    """
    Owns the output device and drains a PlaybackBuffer into it.

    The stream is released on close() and on context-manager exit.
    """

    def __init__(
        self,
        buffer: PlaybackBuffer,
        *,
        sample_rate_hz: int = WIRE_OUTPUT_SAMPLE_RATE_HZ,
        block_size: int = PLAYBACK_FRAME_SIZE,
        device: Optional[int] = None,
    ) -> None:
        self._buffer = buffer
        self._sample_rate_hz = sample_rate_hz
        self._block_size = block_size
        self._device = device
        self._stream: Any = None

    def _on_audio_out(self, outdata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        outdata[:, 0] = self._buffer.drain(frames)

    def start(self) -> None:
        """Open and start the output stream. Idempotent."""
        if self._stream is not None:
            return
        # PortAudio is loaded on import
        import sounddevice as sd  # pylint: disable=import-outside-toplevel

        self._stream = sd.OutputStream(
            samplerate=self._sample_rate_hz,
            channels=AUDIO_CHANNELS,
            dtype="float32",
            blocksize=self._block_size,
            device=self._device,
            callback=self._on_audio_out,
        )
        self._stream.start()
        log_event(make_event(
            "CLIENT_SPEAKER_STARTED",
            sample_rate_hz=self._sample_rate_hz,
        ))

    def close(self) -> None:
        """Stop and release the output stream. Safe when already closed."""
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()
        self._buffer.flush()

    @property
    def active(self) -> bool:
        """True while the output stream is open."""
        return self._stream is not None

    def __enter__(self) -> SpeakerOutput:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
