# pylint: disable=missing-module-docstring,missing-function-docstring

import base64

import numpy as np
import pytest

from live_relay.audio import codec


QUANT_STEP = 1.0 / 32767


def test_round_trip_within_one_quantization_step() -> None:
    samples = np.array([-1.0, -0.75, -0.5, -1e-4, 0.0, 1e-4, 0.25, 0.5, 0.999, 1.0])

    decoded = codec.decode(codec.encode(samples))

    assert decoded.dtype == np.float32
    assert len(decoded) == len(samples)
    assert np.all(np.abs(decoded - samples) <= QUANT_STEP)


def test_round_trip_random_samples() -> None:
    rng = np.random.default_rng(1234)
    samples = rng.uniform(-1.0, 1.0, size=4096)

    decoded = codec.decode(codec.encode(samples))

    assert np.max(np.abs(decoded - samples)) <= QUANT_STEP


def test_out_of_range_values_clamp_to_extremes() -> None:
    decoded = codec.decode(codec.encode(np.array([-3.0, 2.5])))

    assert decoded[0] == pytest.approx(-1.0)
    assert decoded[1] == pytest.approx(1.0)


def test_asymmetric_scaling_keeps_full_scale_in_range() -> None:
    pcm = codec.float32_to_pcm16(np.array([-1.0, 1.0]))

    assert np.frombuffer(pcm, dtype="<i2").tolist() == [-32768, 32767]


def test_encoding_truncates_toward_zero() -> None:
    # 0.5 * 32767 = 16383.5 ; -0.5 * 32768 is exact
    pcm = codec.float32_to_pcm16(np.array([0.5, -0.5, -0.00002]))

    assert np.frombuffer(pcm, dtype="<i2").tolist() == [16383, -16384, 0]


def test_decode_ignores_trailing_odd_byte() -> None:
    blob = base64.b64encode(b"\x00\x40\x7f").decode("ascii")

    decoded = codec.decode(blob)

    assert len(decoded) == 1
    assert decoded[0] == pytest.approx(0x4000 / 32767)


def test_decode_two_zero_bytes_is_one_silent_sample() -> None:
    decoded = codec.decode("AAA=")

    assert decoded.tolist() == [0.0]


def test_resample_identity_returns_input_unchanged() -> None:
    x = np.linspace(-1, 1, 100, dtype=np.float32)

    assert codec.resample(x, 48000, 48000) is x
    # default target is the 16 kHz wire rate
    assert codec.resample(x, 16000) is x
    assert codec.resample(x, 48000) is not x


@pytest.mark.parametrize(
    ("n", "in_rate", "out_rate"),
    [
        (4096, 48000, 16000),
        (4096, 44100, 16000),
        (4097, 22050, 16000),
        (100, 8000, 16000),
        (3, 48000, 16000),
        (1, 44100, 16000),
    ],
)
def test_resample_output_length(n: int, in_rate: int, out_rate: int) -> None:
    x = np.zeros(n, dtype=np.float32)

    out = codec.resample(x, in_rate, out_rate)

    assert len(out) == (n * out_rate) // in_rate


def test_resample_downsample_picks_source_positions() -> None:
    x = np.array([0.0, 0.1, 0.2, 0.3, 0.4, 0.5], dtype=np.float32)

    out = codec.resample(x, 48000, 16000)

    assert out.tolist() == pytest.approx([0.0, 0.3])


def test_resample_upsample_interpolates_and_clamps_last_sample() -> None:
    x = np.array([0.0, 1.0], dtype=np.float32)

    out = codec.resample(x, 8000, 16000)

    # positions 0, 0.5, 1.0, 1.5 ; the last reads past the end and clamps
    assert out.tolist() == pytest.approx([0.0, 0.5, 1.0, 1.0])


def test_rms() -> None:
    assert codec.rms(np.zeros(0, dtype=np.float32)) == 0.0
    assert codec.rms(np.full(16, 0.5, dtype=np.float32)) == pytest.approx(0.5)
    assert codec.rms(np.array([1.0, -1.0, 1.0, -1.0])) == pytest.approx(1.0)
