"""
Tests for loudness metering and buffer helpers.

How to run:
    poetry run pytest tests/test_audio_utils.py
"""

import numpy as np
import pytest

from harmonai.audio import (
    LevelMeter,
    bytes_to_float32,
    encode_wav,
    float32_to_bytes,
    format_timestamp,
    normalized_level,
    rms,
    rms_to_decibels,
    to_mono,
    wav_duration,
)


def test_rms_of_constant_signal():
    assert rms(np.full(128, 0.5, dtype=np.float32)) == pytest.approx(0.5)


def test_rms_of_empty_buffer_is_zero():
    assert rms(np.zeros(0, dtype=np.float32)) == 0.0


def test_decibels_are_clamped():
    assert rms_to_decibels(0.0) == -80.0
    assert rms_to_decibels(1e-9) == -80.0
    assert rms_to_decibels(1.0) == 0.0
    assert rms_to_decibels(4.0) == 0.0
    assert rms_to_decibels(0.1) == pytest.approx(-20.0)


def test_normalized_level_range():
    assert normalized_level(np.zeros(64)) == 0.0
    assert normalized_level(np.ones(64)) == pytest.approx(1.0)
    # 0.1 RMS is -20 dB, three quarters of the way up from -80 dB
    assert normalized_level(np.full(64, 0.1)) == pytest.approx(0.75)


def test_level_meter_scrolls():
    meter = LevelMeter(size=3)
    assert meter.levels == [0.0, 0.0, 0.0]

    meter.push(np.ones(16))
    meter.push(np.full(16, 0.1))

    assert meter.levels == pytest.approx([0.0, 1.0, 0.75])
    assert meter.current == pytest.approx(0.75)

    meter.push(np.zeros(16))
    meter.push(np.ones(16))
    assert meter.levels == pytest.approx([0.75, 0.0, 1.0])


def test_level_meter_reset():
    meter = LevelMeter(size=4)
    meter.push(np.ones(8))
    meter.reset()
    assert meter.levels == [0.0] * 4


def test_level_meter_rejects_bad_size():
    with pytest.raises(ValueError):
        LevelMeter(size=0)


def test_to_mono_averages_channels():
    stereo = np.array([1.0, 0.0, 0.5, 0.5, -1.0, 1.0], dtype=np.float32)
    assert to_mono(stereo, 2).tolist() == pytest.approx([0.5, 0.5, 0.0])
    assert to_mono(stereo, 1) is not None
    assert to_mono(stereo, 1).size == 6


def test_float32_codec():
    samples = np.array([0.0, 0.25, -0.5, 1.0], dtype=np.float32)
    data = float32_to_bytes(samples)

    assert len(data) == 16
    assert data[4:8] == np.float32(0.25).tobytes()
    assert bytes_to_float32(data).tolist() == samples.tolist()


def test_encode_wav_duration():
    data = encode_wav(np.zeros(8000, dtype=np.float32), 16000)
    assert data[:4] == b"RIFF"
    assert wav_duration(data) == pytest.approx(0.5)


def test_encode_wav_clips_out_of_range_samples():
    data = encode_wav(np.array([2.0, -2.0], dtype=np.float32), 8000)
    frames = np.frombuffer(data[-4:], dtype=np.int16)
    assert frames.tolist() == [32767, -32767]


def test_format_timestamp():
    assert format_timestamp(65) == "01:05"
    assert format_timestamp(3725) == "01:02:05"
