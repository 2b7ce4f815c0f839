"""
Tests for microphone capture with PortAudio replaced by a fake.

How to run:
    poetry run pytest tests/test_capture.py
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

pytest.importorskip("pyaudio")

from harmonai.audio import capture  # noqa: E402


class FakeInputStream:
    def __init__(self, buffers):
        self.buffers = list(buffers)
        self.closed = False

    def read(self, frames, exception_on_overflow=True):
        if not self.buffers:
            raise OSError("Input overflowed")
        return self.buffers.pop(0)

    def is_active(self):
        return not self.closed

    def stop_stream(self):
        pass

    def close(self):
        self.closed = True


@pytest.fixture
def fake_pyaudio(monkeypatch):
    pa = MagicMock()
    monkeypatch.setattr(capture.pyaudio, "PyAudio", MagicMock(return_value=pa))
    return pa


def test_list_input_devices(fake_pyaudio):
    fake_pyaudio.get_device_count.return_value = 2
    fake_pyaudio.get_device_info_by_index.side_effect = [
        {"name": "Speakers", "maxInputChannels": 0, "defaultSampleRate": 48000.0},
        {"name": "USB Mic", "maxInputChannels": 2, "defaultSampleRate": 44100.0},
    ]

    devices = capture.list_input_devices()

    assert devices == [{"index": 1, "name": "USB Mic", "maxInputChannels": 2, "defaultSampleRate": 44100.0}]
    fake_pyaudio.terminate.assert_called_once()


def test_stream_delivers_mono_buffers(fake_pyaudio):
    stereo = np.array([0.5, 0.1, 0.5, 0.1], dtype=np.float32).tobytes()
    fake_pyaudio.open.return_value = FakeInputStream([stereo])
    received = []
    got_buffer = threading.Event()

    def on_buffer(samples):
        received.append(samples)
        got_buffer.set()

    stream = capture.MicrophoneStream(on_buffer, sample_rate=16000, frames_per_buffer=2, channels=2)
    stream.start()
    assert got_buffer.wait(2)
    stream.stop()

    assert received[0].tolist() == pytest.approx([0.3, 0.3])
    assert not stream.is_running
    fake_pyaudio.terminate.assert_called_once()


def test_stream_falls_back_to_mono(fake_pyaudio):
    fake_pyaudio.open.side_effect = [OSError("Invalid number of channels"), FakeInputStream([])]

    stream = capture.MicrophoneStream(lambda samples: None, channels=2)
    stream.start()
    stream.stop()

    assert stream.channels == 1
    assert fake_pyaudio.open.call_args.kwargs["channels"] == 1


def test_stream_open_failure(fake_pyaudio):
    fake_pyaudio.open.side_effect = OSError("Device unavailable")

    stream = capture.MicrophoneStream(lambda samples: None)
    with pytest.raises(RuntimeError, match="Failed to open input stream"):
        stream.start()

    fake_pyaudio.terminate.assert_called_once()
    assert not stream.is_running


def test_read_errors_insert_silence(fake_pyaudio, monkeypatch):
    monkeypatch.setattr(capture, "MAX_CONSECUTIVE_ERRORS", 3)
    monkeypatch.setattr(capture.time, "sleep", lambda seconds: None)
    fake_pyaudio.open.return_value = FakeInputStream([])
    received = []

    stream = capture.MicrophoneStream(received.append, frames_per_buffer=4)
    stream.start()
    stream._thread.join(2)
    stream.stop()

    assert len(received) == 2
    assert all(buffer.tolist() == [0.0] * 4 for buffer in received)


def test_alert_tone(fake_pyaudio):
    output = MagicMock()
    fake_pyaudio.open.return_value = output

    capture.play_alert_tone(duration=0.01, rate=8000)

    written = np.frombuffer(output.write.call_args[0][0], dtype=np.float32)
    assert written.size == 80
    assert np.abs(written).max() <= 0.3 + 1e-6
    output.close.assert_called_once()
    fake_pyaudio.terminate.assert_called_once()
