"""
Data models for discussion sessions.
"""

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, Optional

DEFAULT_ALERT_SEVERITIES = ("negative", "high")


class SessionState(Enum):
    """Lifecycle state of the current discussion session."""

    ABSENT = "absent"
    CREATED = "created"
    ACTIVE = "active"
    ENDED = "ended"


def default_session_name(now: Optional[datetime] = None) -> str:
    """Name given to sessions created without one."""
    return f"Session {(now or datetime.now()).isoformat(timespec='seconds')}"


def _parse_timestamp(value: Any) -> float:
    """Accept epoch seconds (number or numeric string); anything else means now."""
    if isinstance(value, bool):
        return time.time()
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    return time.time()


@dataclass(frozen=True)
class TranscriptEntry:
    """A single transcribed utterance."""

    text: str
    timestamp: float
    session_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "TranscriptEntry":
        """
        Build an entry from a ``transcription`` event or a stored document entry.

        Raises:
            ValueError: If the payload is not a mapping with a text field
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid transcription data format: {payload!r}")

        text = payload.get("text")
        if not isinstance(text, str):
            raise ValueError(f"Invalid transcription data format: {payload!r}")

        session_id = payload.get("sessionId")
        return cls(
            text=text,
            timestamp=_parse_timestamp(payload.get("timestamp")),
            session_id=session_id if isinstance(session_id, str) else None,
        )

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp)

    @property
    def formatted_time(self) -> str:
        return self.date.strftime("%H:%M")

    def to_dict(self) -> Dict[str, Any]:
        data = {"text": self.text, "timestamp": self.timestamp}
        if self.session_id:
            data["sessionId"] = self.session_id
        return data


@dataclass(frozen=True)
class SentimentAlert:
    """A sentiment alert pushed by the backend."""

    session_id: Optional[str]
    severity: str
    text: str = ""
    score: Optional[float] = None
    timestamp: float = field(default_factory=time.time)
    flagged: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "SentimentAlert":
        """
        Build an alert from a ``sentiment_alert`` event.

        Raises:
            ValueError: If the payload is not a mapping with a severity flag
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Invalid sentiment alert format: {payload!r}")

        severity = payload.get("severity")
        flagged = payload.get("isNegative") is True
        if not isinstance(severity, str):
            if not flagged:
                raise ValueError(f"Invalid sentiment alert format: {payload!r}")
            severity = "negative"

        score = payload.get("score")
        text = payload.get("text")
        session_id = payload.get("sessionId")
        return cls(
            session_id=session_id if isinstance(session_id, str) else None,
            severity=severity.lower(),
            text=text if isinstance(text, str) else "",
            score=float(score) if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
            timestamp=_parse_timestamp(payload.get("timestamp")),
            flagged=flagged,
        )

    def is_alerting(self, severities: Iterable[str] = DEFAULT_ALERT_SEVERITIES) -> bool:
        """Whether this alert should interrupt the discussion."""
        return self.flagged or self.severity in {s.lower() for s in severities}

    @property
    def is_negative(self) -> bool:
        return self.is_alerting()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionInfo:
    """Snapshot of the current session."""

    session_id: Optional[str]
    name: Optional[str]
    user_id: Optional[str]
    state: SessionState
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    chunks_sent: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.session_id,
            "name": self.name,
            "user_id": self.user_id,
            "state": self.state.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "chunks_sent": self.chunks_sent,
        }
