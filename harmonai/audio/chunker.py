"""
Fixed-duration chunking of captured audio.

Buffers are collected until ``chunk_seconds`` of audio is available, then
encoded as a WAV file and handed to ``on_chunk``. ``flush`` emits whatever is
left when recording stops.
"""

import threading
from typing import Callable, List

import numpy as np

from .utils import encode_wav


class ChunkAccumulator:
    """Collect mono buffers into fixed-duration WAV chunks."""

    def __init__(self, chunk_seconds: float, sample_rate: int, on_chunk: Callable[[bytes], None]):
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be positive")
        self.chunk_seconds = chunk_seconds
        self.sample_rate = sample_rate
        self.on_chunk = on_chunk
        self.samples_per_chunk = max(1, int(round(chunk_seconds * sample_rate)))

        self._parts: List[np.ndarray] = []
        self._pending = 0
        self._lock = threading.Lock()

    @property
    def pending_samples(self) -> int:
        with self._lock:
            return self._pending

    def add(self, samples: np.ndarray) -> int:
        """
        Add a buffer and emit every complete chunk.

        Returns:
            Number of chunks emitted by this call
        """
        samples = np.asarray(samples, dtype=np.float32)
        if samples.size == 0:
            return 0

        ready = []
        with self._lock:
            self._parts.append(samples)
            self._pending += samples.size
            while self._pending >= self.samples_per_chunk:
                joined = np.concatenate(self._parts)
                ready.append(joined[: self.samples_per_chunk])
                rest = joined[self.samples_per_chunk :]
                self._parts = [rest] if rest.size else []
                self._pending = int(rest.size)

        for chunk in ready:
            self.on_chunk(encode_wav(chunk, self.sample_rate))
        return len(ready)

    def flush(self) -> bool:
        """
        Emit the partial chunk, if any.

        Returns:
            True if a chunk was emitted
        """
        with self._lock:
            if not self._pending:
                return False
            chunk = np.concatenate(self._parts)
            self._parts = []
            self._pending = 0

        self.on_chunk(encode_wav(chunk, self.sample_rate))
        return True

    def clear(self) -> None:
        with self._lock:
            self._parts = []
            self._pending = 0
