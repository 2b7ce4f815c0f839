"""
Microphone capture using PyAudio (pyaudiowpatch on Windows).

This module reads fixed-size float32 buffers from an input device on a
background thread and hands each buffer, down-mixed to mono, to a callback.
It also plays the short alert tone used by sentiment interrupts.

Key features:
- Input device listing
- Threaded fixed-size buffer capture with mono fallback
- Silence insertion on read errors
- Alert tone playback on the default output device
"""

import logging
import sys
import threading
import time
from typing import Callable, Dict, List, Optional

import numpy as np

from .utils import to_mono

# Platform-specific audio library import
if sys.platform == "win32":
    import pyaudiowpatch as pyaudio
else:
    import pyaudio

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 100


def list_input_devices() -> List[Dict]:
    """
    List all audio devices that can record.

    Returns:
        List of device information dictionaries
    """
    pa = pyaudio.PyAudio()
    devices = []

    try:
        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if info["maxInputChannels"] <= 0:
                continue
            devices.append(
                {
                    "index": i,
                    "name": info["name"],
                    "maxInputChannels": info["maxInputChannels"],
                    "defaultSampleRate": info["defaultSampleRate"],
                }
            )
    finally:
        pa.terminate()

    return devices


class MicrophoneStream:
    """
    Capture audio from one input device in fixed-size buffers.

    Buffers are read on a daemon thread. Each buffer is converted to a mono
    float32 array and passed to ``on_buffer``. Exceptions raised by the
    callback are logged so a consumer bug cannot stop the capture.
    """

    def __init__(
        self,
        on_buffer: Callable[[np.ndarray], None],
        sample_rate: int = 44100,
        frames_per_buffer: int = 4096,
        device_index: Optional[int] = None,
        channels: int = 1,
    ):
        """
        Initialize the microphone stream.

        Args:
            on_buffer: Called with every captured buffer (mono float32)
            sample_rate: Capture sample rate in Hz
            frames_per_buffer: Buffer size in frames
            device_index: Input device index, None for the default device
            channels: Requested channel count (falls back to mono)
        """
        self.on_buffer = on_buffer
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer
        self.device_index = device_index
        self.channels = channels

        self.pa = None
        self.stream = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Open the input stream and start the capture thread.

        Raises:
            RuntimeError: If no stream can be opened on the device
        """
        if self.is_running:
            logger.warning("Microphone stream is already running")
            return

        self.pa = pyaudio.PyAudio()
        try:
            self.stream = self._open_stream()
        except Exception:
            self.pa.terminate()
            self.pa = None
            raise

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._read_loop, daemon=True)
        self._thread.start()
        logger.info(
            f"Microphone capture started ({self.sample_rate}Hz, {self.channels} channel(s), "
            f"{self.frames_per_buffer} frames per buffer)"
        )

    def stop(self) -> None:
        """Stop the capture thread and release the device."""
        self._stop_event.set()

        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

        if self.stream:
            try:
                if self.stream.is_active():
                    self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                logger.warning(f"Error closing input stream: {e}")
            self.stream = None

        if self.pa:
            self.pa.terminate()
            self.pa = None

        logger.info("Microphone capture stopped")

    def _open_stream(self):
        """Open the input stream, retrying with mono if the channel count is rejected."""
        try:
            return self._open(self.channels)
        except Exception as e:
            if self.channels <= 1:
                raise RuntimeError(f"Failed to open input stream: {e}")
            logger.warning(f"Failed to open stream with {self.channels} channels, retrying with mono: {e}")

        try:
            stream = self._open(1)
        except Exception as e:
            raise RuntimeError(f"Failed to open input stream: {e}")
        self.channels = 1
        return stream

    def _open(self, channels: int):
        return self.pa.open(
            format=pyaudio.paFloat32,
            channels=channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.frames_per_buffer,
            input_device_index=self.device_index,
        )

    def _read_loop(self) -> None:
        """
        Thread function reading buffers until stopped.

        Read errors insert a silent buffer so downstream chunk timing stays
        consistent; after too many consecutive errors the loop gives up.
        """
        silence = np.zeros(self.frames_per_buffer, dtype=np.float32)
        consecutive_errors = 0

        while not self._stop_event.is_set():
            try:
                data = self.stream.read(self.frames_per_buffer, exception_on_overflow=False)
                samples = to_mono(np.frombuffer(data, dtype=np.float32), self.channels)
                consecutive_errors = 0
            except Exception as e:
                consecutive_errors += 1
                if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    logger.error(f"Giving up on input stream after {consecutive_errors} read errors: {e}")
                    break
                samples = silence
                time.sleep(0.01)

            try:
                self.on_buffer(samples)
            except Exception:
                logger.exception("Audio buffer callback failed")


def play_alert_tone(frequency: float = 880.0, duration: float = 0.25, volume: float = 0.3, rate: int = 44100) -> None:
    """
    Play a short sine tone on the default output device.

    Args:
        frequency: Tone frequency in Hz
        duration: Tone length in seconds
        volume: Amplitude in [0, 1]
        rate: Output sample rate in Hz
    """
    t = np.arange(int(rate * duration), dtype=np.float32) / rate
    tone = (volume * np.sin(2 * np.pi * frequency * t)).astype(np.float32)

    pa = pyaudio.PyAudio()
    try:
        stream = pa.open(format=pyaudio.paFloat32, channels=1, rate=rate, output=True)
        try:
            stream.write(tone.tobytes())
        finally:
            stream.close()
    finally:
        pa.terminate()
