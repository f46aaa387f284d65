"""
Sample codec: float samples <-> base64 PCM16 wire blobs.

Pure functions, no state. No resampling filters, no channel mixing.
"""

from __future__ import annotations

import base64

import numpy as np

from live_relay.constants import (
    PCM16_NEGATIVE_SCALE,
    PCM16_POSITIVE_SCALE,
    WIRE_INPUT_SAMPLE_RATE_HZ,
)


def float32_to_pcm16(samples: np.ndarray) -> bytes:
    """
    Convert float samples to PCM16 little-endian bytes.

    Clamps to [-1, 1]; negative values scale by 32768, non-negative by
    32767, then truncate toward zero.
    """
    f = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(f < 0, f * PCM16_NEGATIVE_SCALE, f * PCM16_POSITIVE_SCALE)
    return np.trunc(scaled).astype("<i2").tobytes()


def pcm16_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian bytes to float32 in [-1.0, 1.0].

    A trailing odd byte is ignored.
    """
    if len(pcm_bytes) % 2 != 0:
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2").astype(np.float64)
    audio_f = np.where(
        audio_i16 < 0,
        audio_i16 / PCM16_NEGATIVE_SCALE,
        audio_i16 / PCM16_POSITIVE_SCALE,
    )
    return audio_f.astype(np.float32)


def encode(samples: np.ndarray) -> str:
    """Encode float samples into a base64 PCM16 wire blob."""
    return base64.b64encode(float32_to_pcm16(samples)).decode("ascii")


def decode(blob: str) -> np.ndarray:
    """Decode a base64 PCM16 wire blob into float32 samples."""
    return pcm16_to_float32(base64.b64decode(blob))


def resample(
    samples: np.ndarray,
    in_rate: int,
    out_rate: int = WIRE_INPUT_SAMPLE_RATE_HZ,
) -> np.ndarray:
    """
    Linear-interpolation resampler.

    - Identity (same object) when rates match.
    - Output index i reads source position i * in_rate / out_rate.
    - Upper neighbour clamps to the last valid sample.
    - Output length = floor(len(samples) * out_rate / in_rate).

    No anti-aliasing filter; voice-band content tolerates it.
    """
    if in_rate == out_rate:
        return samples

    src = np.asarray(samples, dtype=np.float32)
    out_len = (len(src) * out_rate) // in_rate
    if out_len <= 0 or len(src) == 0:
        return np.zeros(0, dtype=np.float32)

    ratio = in_rate / out_rate
    positions = np.arange(out_len, dtype=np.float64) * ratio
    i0 = np.minimum(np.floor(positions).astype(np.int64), len(src) - 1)
    i1 = np.minimum(i0 + 1, len(src) - 1)
    frac = positions - i0

    out = src[i0] + (src[i1] - src[i0]) * frac
    return out.astype(np.float32)


def rms(samples: np.ndarray) -> float:
    """Root-mean-square energy. Activity heuristic only."""
    f = np.asarray(samples, dtype=np.float64)
    return float(np.sqrt(np.sum(np.square(f)) / max(1, f.size)))
