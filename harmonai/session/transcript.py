"""
Transcription feed for a discussion session.

``TranscriptLog`` keeps the entries received over the socket in arrival
order. ``TranscriptSync`` periodically replaces that log with the durable
session document, which is the source of truth.
"""

import logging
import threading
from typing import Any, Iterable, List, Optional

from requests.exceptions import RequestException

from .models import TranscriptEntry

logger = logging.getLogger(__name__)


class TranscriptLog:
    """Append-only, arrival-ordered transcript scoped to one session."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id
        self._entries: List[TranscriptEntry] = []
        self._latest_text = ""
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def entries(self) -> List[TranscriptEntry]:
        with self._lock:
            return list(self._entries)

    @property
    def latest_text(self) -> str:
        with self._lock:
            return self._latest_text

    @property
    def text(self) -> str:
        with self._lock:
            return " ".join(entry.text for entry in self._entries)

    def append(self, entry: TranscriptEntry) -> bool:
        """
        Append an entry.

        Entries tagged with another session id are rejected.

        Returns:
            True if the entry was appended
        """
        with self._lock:
            if entry.session_id and self.session_id and entry.session_id != self.session_id:
                logger.debug(f"Ignoring transcription for session {entry.session_id}")
                return False
            self._entries.append(entry)
            self._latest_text = entry.text
            return True

    def handle_event(self, payload: Any) -> Optional[TranscriptEntry]:
        """Handle a ``transcription`` event. Malformed payloads are logged and dropped."""
        try:
            entry = TranscriptEntry.from_payload(payload)
        except ValueError as e:
            logger.warning(str(e))
            return None

        if not self.append(entry):
            return None

        logger.info(f"Received transcription: {entry.text}")
        return entry

    def set_latest(self, text: str) -> None:
        """Update the in-progress text without adding an entry."""
        with self._lock:
            self._latest_text = text

    def resync(self, entries: Iterable[TranscriptEntry]) -> None:
        """Replace the log with entries from the durable store, sorted by timestamp."""
        ordered = sorted(entries, key=lambda entry: entry.timestamp)
        with self._lock:
            self._entries = ordered
            if ordered:
                self._latest_text = ordered[-1].text

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._latest_text = ""

    def reset(self, session_id: Optional[str]) -> None:
        """Clear the log and scope it to a new session."""
        with self._lock:
            self.session_id = session_id
            self._entries = []
            self._latest_text = ""


def entries_from_document(document: Optional[dict]) -> List[TranscriptEntry]:
    """
    Parse the transcription entries of a durable session document.

    Entries without text or a numeric timestamp are skipped.
    """
    if not isinstance(document, dict):
        return []

    entries = []
    for item in document.get("transcription") or []:
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        timestamp = item.get("timestamp")
        if not isinstance(text, str) or isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            continue
        entries.append(TranscriptEntry(text=text, timestamp=float(timestamp), session_id=document.get("sessionId")))
    return entries


class TranscriptSync:
    """Poll the durable session document and re-sync a TranscriptLog from it."""

    def __init__(self, api, log: TranscriptLog, interval: float = 5.0):
        """
        Args:
            api: APIClient used to fetch the session document
            log: Transcript log to keep in sync
            interval: Poll interval in seconds
        """
        self.api = api
        self.log = log
        self.interval = interval
        self.document: Optional[dict] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def sync_once(self) -> bool:
        """
        Fetch the session document once and re-sync the log.

        Returns:
            True if the log was updated

        Raises:
            RequestException: If the store cannot be reached
            ValueError: If the store returns something other than a document
        """
        session_id = self.log.session_id
        if not session_id:
            return False

        document = self.api.get_session(session_id)
        if document is None:
            logger.warning(f"Session {session_id} not found in store")
            return False
        if not isinstance(document, dict):
            raise ValueError(f"Invalid session document for {session_id}: {type(document).__name__}")

        self.document = document
        if "transcription" not in document:
            return False

        self.log.resync(entries_from_document(document))
        return True

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, daemon=True)
        self._thread.start()
        logger.info(f"Transcript sync started for session {self.log.session_id}")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=self.interval + 1.0)
            self._thread = None

    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.sync_once()
            except (RequestException, ValueError) as e:
                logger.warning(f"Transcript sync failed: {e}")
            self._stop_event.wait(self.interval)
