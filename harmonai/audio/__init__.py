"""
Audio capture and processing for the discussion client.

Main components:
- MicrophoneStream: Threaded fixed-size buffer capture (harmonai.audio.capture)
- ChunkAccumulator: Fixed-duration WAV chunking for chunked uploads
- LevelMeter: Rolling 0-1 loudness history for visualization
- DiscussionSummarizer: OpenAI or local transcript summaries
- Utility functions: PCM conversion, WAV encoding, timestamp formatting

The capture module binds to PortAudio on import, so it is imported from
``harmonai.audio.capture`` directly rather than re-exported here.

Example usage:
    from harmonai.audio import LevelMeter
    from harmonai.audio.capture import MicrophoneStream

    meter = LevelMeter(size=100)
    stream = MicrophoneStream(on_buffer=meter.push)
    stream.start()
"""

from .chunker import ChunkAccumulator
from .summarizer import DiscussionSummarizer, local_summary
from .utils import (
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

__all__ = [
    "ChunkAccumulator",
    "DiscussionSummarizer",
    "LevelMeter",
    "bytes_to_float32",
    "encode_wav",
    "float32_to_bytes",
    "format_timestamp",
    "local_summary",
    "normalized_level",
    "rms",
    "rms_to_decibels",
    "to_mono",
    "wav_duration",
]
