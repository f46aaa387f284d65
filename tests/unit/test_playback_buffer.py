# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np

from live_relay.audio.playback import PlaybackBuffer


def _chunk(*values: float) -> np.ndarray:
    return np.array(values, dtype=np.float32)


def test_drain_empty_buffer_is_silence() -> None:
    buf = PlaybackBuffer()

    frame = buf.drain(128)

    assert frame.shape == (128,)
    assert not frame.any()


def test_drain_concatenates_across_chunks_and_zero_fills() -> None:
    buf = PlaybackBuffer()
    buf.enqueue(_chunk(0.1, 0.2))
    buf.enqueue(_chunk(0.3))
    buf.enqueue(_chunk(0.4, 0.5, 0.6))

    first = buf.drain(4)
    second = buf.drain(4)

    assert first.tolist() == np.array([0.1, 0.2, 0.3, 0.4], dtype=np.float32).tolist()
    assert second.tolist() == np.array([0.5, 0.6, 0.0, 0.0], dtype=np.float32).tolist()
    assert buf.is_empty()


def test_partial_drain_keeps_remainder_of_head_chunk() -> None:
    buf = PlaybackBuffer()
    buf.enqueue(np.arange(10, dtype=np.float32))

    buf.drain(3)

    assert len(buf) == 7
    assert buf.drain(2).tolist() == [3.0, 4.0]


def test_order_is_preserved() -> None:
    buf = PlaybackBuffer()
    chunks = [np.full(50, i, dtype=np.float32) for i in range(1, 6)]
    for c in chunks:
        buf.enqueue(c)

    out = np.concatenate([buf.drain(32) for _ in range(8)])

    expected = np.concatenate(chunks)
    assert out[: len(expected)].tolist() == expected.tolist()
    assert not out[len(expected):].any()


def test_flush_drops_everything_queued() -> None:
    buf = PlaybackBuffer()
    buf.enqueue(_chunk(0.5, 0.5))
    buf.enqueue(_chunk(0.5))

    buf.flush()

    assert buf.is_empty()
    assert not buf.drain(8).any()


def test_pause_outputs_silence_without_consuming() -> None:
    buf = PlaybackBuffer()
    buf.enqueue(_chunk(0.25, 0.25))

    buf.pause()
    assert buf.paused
    assert not buf.drain(2).any()
    assert len(buf) == 2

    buf.resume()
    assert buf.drain(2).tolist() == [0.25, 0.25]


def test_empty_chunk_is_ignored() -> None:
    buf = PlaybackBuffer()
    buf.enqueue(np.zeros(0, dtype=np.float32))

    assert buf.snapshot() == {"chunks": 0, "samples": 0, "paused": False}
