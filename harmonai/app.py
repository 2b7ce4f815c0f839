"""
Application wiring for the discussion client.

``DiscussionClient`` builds the REST client, the Socket.IO channel and the
session, alert, wake-word and archive components from configuration and
connects them the way the command line front end uses them.
"""

import logging
import threading
from typing import List, Optional

from requests.exceptions import RequestException

from .audio.summarizer import DiscussionSummarizer
from .client import APIClient, SocketChannel
from .config import ConfigManager
from .session import (
    SentimentAlertHandler,
    SessionArchive,
    SessionManager,
    SessionState,
    TranscriptEntry,
    WakeWordMonitor,
)
from .session.alerts import log_notifier, tone_notifier
from .session.transcript import entries_from_document

logger = logging.getLogger(__name__)


class DiscussionClient:
    """All client components for one backend."""

    def __init__(
        self,
        server_url: Optional[str] = None,
        mode: Optional[str] = None,
        archive_dir: Optional[str] = None,
        play_tone: bool = True,
        api: Optional[APIClient] = None,
        channel: Optional[SocketChannel] = None,
        audio_source_factory=None,
    ):
        url = ConfigManager.get("SERVER_URL", server_url)

        self.api = api or APIClient(url, timeout=ConfigManager.get_float("REQUEST_TIMEOUT"))
        self.channel = channel or SocketChannel(
            url,
            transports=ConfigManager.get_list("SOCKET_TRANSPORTS"),
            reconnect_attempts=ConfigManager.get_int("SOCKET_RECONNECT_ATTEMPTS"),
            reconnect_wait=ConfigManager.get_float("SOCKET_RECONNECT_WAIT"),
            verify_ssl=ConfigManager.get_bool("SOCKET_VERIFY_SSL"),
        )

        notifiers = [log_notifier, tone_notifier] if play_tone else [log_notifier]
        self.alerts = SentimentAlertHandler(
            self.api,
            severities=ConfigManager.get_list("ALERT_SEVERITIES"),
            cooldown=ConfigManager.get_float("ALERT_COOLDOWN"),
            notifiers=notifiers,
        )
        self.channel.on("sentiment_alert", self.alerts.handle_event)

        self.archive = SessionArchive(ConfigManager.get("ARCHIVE_DIR", archive_dir))
        self.sessions = SessionManager.from_config(
            self.api,
            self.channel,
            mode=mode,
            archive=self.archive,
            alerts=self.alerts,
            audio_source_factory=audio_source_factory,
        )
        self.wake_word = WakeWordMonitor(self.channel, on_detected=self._on_wake_word)
        self.summarizer = DiscussionSummarizer(
            api_key=ConfigManager.get("OPENAI_API_KEY"), model=ConfigManager.get("LLM_MODEL")
        )

        self.user_id = "anonymous"
        self.session_name: Optional[str] = None

    def connect(self) -> None:
        self.channel.connect()

    def _on_wake_word(self, message: str, session_id: Optional[str]) -> None:
        if self.sessions.state in (SessionState.CREATED, SessionState.ACTIVE):
            logger.info("Wake word detected during a session, ignoring")
            return
        if self.sessions.is_starting:
            logger.info("Wake word detected while a session is starting, ignoring")
            return
        # Socket handler thread must not block on the REST call
        threading.Thread(target=self._start_from_wake_word, daemon=True).start()

    def _start_from_wake_word(self) -> None:
        try:
            self.sessions.start_recording(user_id=self.user_id, session_name=self.session_name)
        except (RuntimeError, RequestException, ValueError) as e:
            logger.error(f"Could not start session from wake word: {e}")

    def fetch_transcript(self, session_id: str) -> List[TranscriptEntry]:
        """
        Get a session's transcript.

        The durable store is asked first; the local archive is used when the
        session is unknown to the server or the server is unreachable.
        """
        try:
            document = self.api.get_session(session_id)
        except RequestException as e:
            logger.warning(f"Store unavailable, using local archive: {e}")
            document = None

        if document is not None:
            return sorted(entries_from_document(document), key=lambda entry: entry.timestamp)
        return self.archive.get_transcript(session_id)

    def summarize(self, session_id: Optional[str] = None) -> str:
        """Summarize a session (the current one by default) and archive the summary."""
        session_id = session_id or self.sessions.session_id
        if not session_id:
            raise RuntimeError("No session to summarize")

        if session_id == self.sessions.session_id and len(self.sessions.transcript):
            entries = self.sessions.transcript.entries
        else:
            entries = self.fetch_transcript(session_id)

        summary = self.summarizer.summarize(entry.text for entry in entries)
        if self.archive.session_exists(session_id):
            self.archive.save_summary(session_id, summary)
        return summary

    def close(self) -> None:
        if self.sessions.state in (SessionState.CREATED, SessionState.ACTIVE):
            self.sessions.end_session()
        self.sessions.close()
        self.alerts.shutdown()
        self.channel.disconnect()
