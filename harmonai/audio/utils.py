"""
Utility functions for audio processing.

This module provides helper functions for loudness metering, PCM buffer
conversion and WAV encoding. Used by the capture layer and the session
manager for common audio processing tasks.

Key features:
- Audio level (RMS) calculation and decibel normalization
- Rolling level history for visualization
- Float32 PCM codec for streamed buffers
- WAV encoding for chunked uploads
- Timestamp formatting for display
"""

import io
import threading
import wave
from collections import deque
from typing import List

import numpy as np

MIN_DECIBELS = -80.0
MAX_DECIBELS = 0.0


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def rms(samples: np.ndarray) -> float:
    """
    Calculate RMS (Root Mean Square) audio level.

    Args:
        samples: Audio array (float samples in [-1, 1])

    Returns:
        RMS level as float, 0.0 for an empty buffer
    """
    samples = np.asarray(samples, dtype=np.float32)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))


def rms_to_decibels(value: float) -> float:
    """
    Convert an RMS value to decibels clamped to [-80, 0].

    Silence (RMS of zero) maps to the floor instead of -inf.
    """
    if value <= 0.0:
        return MIN_DECIBELS
    decibels = 20.0 * float(np.log10(value))
    return max(MIN_DECIBELS, min(decibels, MAX_DECIBELS))


def normalized_level(samples: np.ndarray) -> float:
    """
    Compute a 0-1 loudness level for a buffer.

    The RMS is converted to decibels, clamped to [-80, 0] and mapped linearly
    so that -80 dB is 0.0 and 0 dB is 1.0.
    """
    decibels = rms_to_decibels(rms(samples))
    return (decibels - MIN_DECIBELS) / (MAX_DECIBELS - MIN_DECIBELS)


class LevelMeter:
    """
    Fixed-size history of normalized levels.

    Each pushed buffer drops the oldest level and appends the newest, which
    gives a scrolling waveform when rendered left to right.
    """

    def __init__(self, size: int = 100):
        if size <= 0:
            raise ValueError("LevelMeter size must be positive")
        self.size = size
        self._levels = deque([0.0] * size, maxlen=size)
        self._lock = threading.Lock()

    def push(self, samples: np.ndarray) -> float:
        """Compute the level of a buffer, record it and return it."""
        level = normalized_level(samples)
        with self._lock:
            self._levels.append(level)
        return level

    @property
    def levels(self) -> List[float]:
        with self._lock:
            return list(self._levels)

    @property
    def current(self) -> float:
        with self._lock:
            return self._levels[-1]

    def reset(self) -> None:
        with self._lock:
            self._levels.extend([0.0] * self.size)


def to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
    """
    Down-mix interleaved samples to a single channel by averaging.

    Args:
        samples: Interleaved float samples
        channels: Number of interleaved channels

    Returns:
        Mono float32 array
    """
    samples = np.asarray(samples, dtype=np.float32)
    if channels <= 1:
        return samples
    usable = samples.size - (samples.size % channels)
    return samples[:usable].reshape(-1, channels).mean(axis=1).astype(np.float32)


def float32_to_bytes(samples: np.ndarray) -> bytes:
    """Serialize samples as little-endian float32 PCM."""
    return np.asarray(samples, dtype="<f4").tobytes()


def bytes_to_float32(data: bytes) -> np.ndarray:
    """Parse little-endian float32 PCM into a float32 array."""
    usable = len(data) - (len(data) % 4)
    return np.frombuffer(data[:usable], dtype="<f4").astype(np.float32)


def encode_wav(samples: np.ndarray, rate: int) -> bytes:
    """
    Encode float samples as a 16-bit mono WAV file in memory.

    Args:
        samples: Audio array (float32, in [-1, 1])
        rate: Sample rate in Hz

    Returns:
        Complete WAV file contents
    """
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    audio_int = (clipped * 32767).astype(np.int16)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(rate)
        wf.writeframes(audio_int.tobytes())
    return buffer.getvalue()


def wav_duration(data: bytes) -> float:
    """Get the duration in seconds of in-memory WAV contents."""
    with wave.open(io.BytesIO(data), "rb") as wf:
        return wf.getnframes() / float(wf.getframerate())
