"""
Sentiment-triggered interrupts.

The backend scores the discussion and pushes ``sentiment_alert`` events.
Alerting severities notify the user locally (log line, alert tone) and ask
the backend for a remedial suggestion on a worker thread. Interrupts are
rate limited by a cooldown so a heated exchange does not produce a burst of
notifications.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from requests.exceptions import RequestException

from .models import DEFAULT_ALERT_SEVERITIES, SentimentAlert

logger = logging.getLogger(__name__)

Notifier = Callable[[SentimentAlert], None]


@dataclass
class AlertRecord:
    """What happened with one received alert."""

    alert: SentimentAlert
    interrupted: bool
    suppressed: bool = False
    suggestion: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alert": self.alert.to_dict(),
            "interrupted": self.interrupted,
            "suppressed": self.suppressed,
            "suggestion": self.suggestion,
            "error": self.error,
        }


def log_notifier(alert: SentimentAlert) -> None:
    logger.warning(f"Sentiment alert ({alert.severity}): {alert.text or 'no text'}")


def tone_notifier(alert: SentimentAlert) -> None:
    # Imported here so the handler works without an audio device
    from ..audio.capture import play_alert_tone

    play_alert_tone()


class SentimentAlertHandler:
    """Turns sentiment alerts into local notifications and suggestion requests."""

    def __init__(
        self,
        api,
        severities: Iterable[str] = DEFAULT_ALERT_SEVERITIES,
        cooldown: float = 10.0,
        notifiers: Optional[List[Notifier]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the handler.

        Args:
            api: APIClient used to request suggestions
            severities: Severities that interrupt the discussion
            cooldown: Minimum seconds between two interrupts
            notifiers: Local notification callables, defaults to logging only
            executor: Executor for suggestion requests
            clock: Monotonic time source
        """
        self.api = api
        self.severities = [s.lower() for s in severities]
        self.cooldown = cooldown
        self.notifiers = list(notifiers) if notifiers is not None else [log_notifier]
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="suggestions")
        self.clock = clock
        self.session_id: Optional[str] = None

        self._history: List[AlertRecord] = []
        self._suggestion_callbacks: List[Callable[[AlertRecord], None]] = []
        self._pending: List[Future] = []
        self._last_interrupt: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def history(self) -> List[AlertRecord]:
        with self._lock:
            return list(self._history)

    def on_suggestion(self, callback: Callable[[AlertRecord], None]) -> None:
        self._suggestion_callbacks.append(callback)

    def handle_event(self, payload: Any) -> Optional[AlertRecord]:
        """
        Handle a ``sentiment_alert`` event.

        Returns:
            The alert record, or None if the payload was malformed or belongs
            to another session
        """
        try:
            alert = SentimentAlert.from_payload(payload)
        except ValueError as e:
            logger.warning(str(e))
            return None

        if alert.session_id and self.session_id and alert.session_id != self.session_id:
            logger.debug(f"Ignoring sentiment alert for session {alert.session_id}")
            return None

        with self._lock:
            record = self._classify(alert)
            self._history.append(record)

        if record.interrupted:
            self._interrupt(record)
        elif record.suppressed:
            logger.info(f"Sentiment alert suppressed by cooldown ({alert.severity})")
        return record

    def _classify(self, alert: SentimentAlert) -> AlertRecord:
        if not alert.is_alerting(self.severities):
            return AlertRecord(alert=alert, interrupted=False)

        now = self.clock()
        if self._last_interrupt is not None and now - self._last_interrupt < self.cooldown:
            return AlertRecord(alert=alert, interrupted=False, suppressed=True)

        self._last_interrupt = now
        return AlertRecord(alert=alert, interrupted=True)

    def _interrupt(self, record: AlertRecord) -> None:
        for notifier in self.notifiers:
            try:
                notifier(record.alert)
            except Exception:
                logger.exception("Alert notifier failed")

        session_id = record.alert.session_id or self.session_id
        if not session_id:
            logger.warning("Cannot request a suggestion without a session id")
            return

        future = self.executor.submit(self._fetch_suggestion, record, session_id)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def _fetch_suggestion(self, record: AlertRecord, session_id: str) -> None:
        alert = record.alert
        try:
            record.suggestion = self.api.request_suggestion(
                session_id, text=alert.text, severity=alert.severity, score=alert.score
            )
        except RequestException as e:
            record.error = str(e)
            logger.error(f"Suggestion request failed: {e}")
            return

        if not record.suggestion:
            return

        logger.info(f"Suggestion: {record.suggestion}")
        for callback in list(self._suggestion_callbacks):
            try:
                callback(record)
            except Exception:
                logger.exception("Suggestion callback failed")

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until pending suggestion requests finish."""
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)

    def reset(self, session_id: Optional[str]) -> None:
        with self._lock:
            self.session_id = session_id
            self._history = []
            self._last_interrupt = None

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)
