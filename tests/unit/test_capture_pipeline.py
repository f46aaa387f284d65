# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import numpy as np
import pytest

from live_relay.audio import codec
from live_relay.audio.capture import CapturePipeline


class FakeTransport:
    def __init__(self, is_open: bool = True) -> None:
        self.is_open = is_open
        self.sent: list[dict[str, Any]] = []

    def send_json(self, msg: dict[str, Any]) -> None:
        self.sent.append(msg)


def _pipeline(transport: FakeTransport, speaking: bool = False) -> tuple[CapturePipeline, list[int]]:
    barges: list[int] = []
    pipeline = CapturePipeline(
        transport=transport,
        is_speaking=lambda: speaking,
        on_barge_in=lambda: barges.append(1),
    )
    return pipeline, barges


def _block(level: float, n: int = 4096) -> np.ndarray:
    return np.full(n, level, dtype=np.float32)


def test_block_is_resampled_encoded_and_sent() -> None:
    transport = FakeTransport()
    pipeline, _ = _pipeline(transport)

    pipeline.process_block(_block(0.1), 48000)

    assert len(transport.sent) == 1
    msg = transport.sent[0]
    assert msg["type"] == "audio"
    samples = codec.decode(msg["base64"])
    assert len(samples) == 4096 * 16000 // 48000
    assert samples[0] == pytest.approx(0.1, abs=1e-4)


def test_input_level_is_smoothed() -> None:
    pipeline, _ = _pipeline(FakeTransport())

    pipeline.process_block(_block(0.1), 16000)
    assert pipeline.level_in == pytest.approx(0.12)

    pipeline.process_block(_block(0.1), 16000)
    assert pipeline.level_in == pytest.approx(0.12 * 0.6 + 0.12)


def test_closed_transport_drops_block_and_skips_barge() -> None:
    transport = FakeTransport(is_open=False)
    pipeline, barges = _pipeline(transport, speaking=True)

    pipeline.process_block(_block(0.5), 48000)

    assert transport.sent == []
    assert barges == []
    # level feedback still updates
    assert pipeline.level_in > 0


def test_loud_block_while_speaking_triggers_barge_in() -> None:
    transport = FakeTransport()
    pipeline, barges = _pipeline(transport, speaking=True)

    pipeline.process_block(_block(0.01), 48000)

    assert barges == [1]
    # audio is still forwarded
    assert len(transport.sent) == 1


def test_quiet_block_while_speaking_does_not_barge() -> None:
    pipeline, barges = _pipeline(FakeTransport(), speaking=True)

    pipeline.process_block(_block(0.004), 48000)

    assert barges == []


def test_loud_block_while_not_speaking_does_not_barge() -> None:
    pipeline, barges = _pipeline(FakeTransport(), speaking=False)

    pipeline.process_block(_block(0.8), 48000)

    assert barges == []


def test_stop_is_idempotent_when_never_started() -> None:
    pipeline, _ = _pipeline(FakeTransport())

    pipeline.stop()
    pipeline.stop()

    assert not pipeline.active
