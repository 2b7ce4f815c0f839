"""
Discussion session package.

This package tracks the server-side session lifecycle, forwards captured
audio, collects the transcription feed and reacts to sentiment alerts and
wake-word detections pushed by the backend.
"""

from .alerts import AlertRecord, SentimentAlertHandler
from .archive import SessionArchive
from .manager import SessionManager
from .models import SentimentAlert, SessionInfo, SessionState, TranscriptEntry
from .transcript import TranscriptLog, TranscriptSync
from .uploader import AudioPacket, ChunkUploader
from .wake_word import WakeWordMonitor

__all__ = [
    "AlertRecord",
    "AudioPacket",
    "ChunkUploader",
    "SentimentAlert",
    "SentimentAlertHandler",
    "SessionArchive",
    "SessionInfo",
    "SessionManager",
    "SessionState",
    "TranscriptEntry",
    "TranscriptLog",
    "TranscriptSync",
    "WakeWordMonitor",
]
