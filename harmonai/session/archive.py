"""
Filesystem archive of finished discussion sessions.

Each session gets a dedicated directory holding its metadata, transcript,
alert history and summary:
- metadata.json: SessionInfo snapshot
- transcript.json: ordered transcript entries
- alerts.json: sentiment alert records
- summary.txt: discussion summary
"""

import json
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import SessionInfo, TranscriptEntry


class SessionArchive:
    """Stores finished sessions on disk."""

    FILES = {
        "metadata": "metadata.json",
        "transcript": "transcript.json",
        "alerts": "alerts.json",
        "summary": "summary.txt",
    }

    def __init__(self, archive_dir: str = "sessions"):
        """
        Initialize the archive.

        Args:
            archive_dir: Directory to store all session directories
        """
        self.archive_dir = Path(archive_dir)
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def get_session_dir(self, session_id: str) -> Path:
        """
        Get the directory of a session.

        Raises:
            ValueError: If the id is empty or would leave the archive directory
        """
        if not session_id or "/" in session_id or "\\" in session_id or session_id in (".", ".."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.archive_dir / session_id

    def session_exists(self, session_id: str) -> bool:
        return self.get_session_dir(session_id).exists()

    def save_session(self, info: SessionInfo) -> None:
        """Create or update the session's metadata."""
        if not info.session_id:
            raise ValueError("Cannot archive a session without an id")

        self.get_session_dir(info.session_id).mkdir(exist_ok=True)
        metadata = info.to_dict()
        metadata["archived_at"] = datetime.now().isoformat()
        self._save_json_file(info.session_id, self.FILES["metadata"], metadata)

    def save_transcript(self, session_id: str, entries: List[TranscriptEntry]) -> None:
        self._save_json_file(session_id, self.FILES["transcript"], [entry.to_dict() for entry in entries])

    def save_alerts(self, session_id: str, alerts: List[Dict[str, Any]]) -> None:
        self._save_json_file(session_id, self.FILES["alerts"], alerts)

    def save_summary(self, session_id: str, summary: str) -> None:
        if not self.session_exists(session_id):
            raise ValueError(f"Session {session_id} is not archived")
        with open(self.get_session_dir(session_id) / self.FILES["summary"], "w", encoding="utf-8") as f:
            f.write(summary)

    def get_metadata(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self._load_json_file(session_id, self.FILES["metadata"])

    def get_transcript(self, session_id: str) -> List[TranscriptEntry]:
        data = self._load_json_file(session_id, self.FILES["transcript"]) or []
        entries = []
        for item in data:
            try:
                entries.append(TranscriptEntry.from_payload(item))
            except ValueError:
                continue
        return entries

    def get_alerts(self, session_id: str) -> List[Dict[str, Any]]:
        return self._load_json_file(session_id, self.FILES["alerts"]) or []

    def get_summary(self, session_id: str) -> Optional[str]:
        path = self.get_session_dir(session_id) / self.FILES["summary"]
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except IOError:
            return None

    def list_sessions(self, state_filter: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """
        List archived sessions.

        Args:
            state_filter: Only return sessions in this state
            limit: Maximum number of sessions to return

        Returns:
            List of metadata dictionaries, newest first
        """
        sessions = []

        for session_dir in self.archive_dir.iterdir():
            if not session_dir.is_dir():
                continue

            metadata = self.get_metadata(session_dir.name)
            if not metadata:
                continue

            if state_filter and metadata.get("state") != state_filter:
                continue

            sessions.append(metadata)

        sessions.sort(key=lambda x: x.get("created_at") or "", reverse=True)
        return sessions[:limit]

    def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and all its files.

        Returns:
            True if the session was deleted, False if it didn't exist
        """
        session_dir = self.get_session_dir(session_id)
        if not session_dir.exists():
            return False

        shutil.rmtree(session_dir)
        return True

    def _save_json_file(self, session_id: str, filename: str, data: Any) -> None:
        if not self.session_exists(session_id):
            raise ValueError(f"Session {session_id} is not archived")

        with open(self.get_session_dir(session_id) / filename, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def _load_json_file(self, session_id: str, filename: str) -> Optional[Any]:
        file_path = self.get_session_dir(session_id) / filename
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return None
