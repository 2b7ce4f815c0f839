"""
Client module for the discussion backend's REST API.

This module provides a simple interface to:
- Check server health
- Create discussion sessions
- Fetch the durable session document (transcript source of truth)
- Upload audio chunks when the socket channel is unavailable
- Request remedial suggestions after sentiment alerts
- Query the wake-word detector state
"""

import base64
import logging
import time
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError, RequestException

from ..session.models import default_session_name

logger = logging.getLogger(__name__)


class APIClient:
    """Client for communicating with the discussion backend."""

    def __init__(self, base_url: str = "http://localhost:5555", timeout: float = 10):
        """
        Initialize the API client.

        Args:
            base_url: Base URL of the backend
            timeout: Default request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def health_check(self) -> Dict[str, Any]:
        """
        Check if the backend is healthy.

        Returns:
            Dictionary containing health status information

        Raises:
            ConnectionError: If unable to connect to the server
        """
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise ConnectionError(f"Unable to connect to server: {e}")

    def create_session(self, user_id: str = "anonymous", session_name: Optional[str] = None) -> str:
        """
        Create a new discussion session.

        Args:
            user_id: Identifier of the user owning the session
            session_name: Display name, defaults to "Session <timestamp>"

        Returns:
            The new session id

        Raises:
            RequestException: If the request fails
            ValueError: If the response has no session id or is unsuccessful
        """
        name = session_name or default_session_name()
        payload = {"userId": user_id, "sessionName": name}

        logger.info(f"Creating session at {self.base_url}/api/discussions/create")
        try:
            response = self.session.post(
                f"{self.base_url}/api/discussions/create", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
        except ValueError as e:
            raise ValueError(f"Failed to parse response: {e}")
        except RequestException as e:
            raise RequestException(f"Failed to create session: {e}")

        session_id = data.get("sessionId") if isinstance(data, dict) else None
        if not isinstance(session_id, str) or not session_id or data.get("status") != "success":
            raise ValueError("Invalid response format or unsuccessful status")

        logger.info(f"Created new session: {session_id}")
        return session_id

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the durable session document.

        Args:
            session_id: Session identifier

        Returns:
            Dictionary with sessionName, startTime and transcription entries,
            or None if the session does not exist

        Raises:
            RequestException: If the request fails
        """
        try:
            response = self.session.get(f"{self.base_url}/api/discussions/{session_id}", timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except RequestException as e:
            raise RequestException(f"Failed to get session: {e}")

    def upload_audio(self, session_id: str, audio: bytes, chunk_index: int) -> Dict[str, Any]:
        """
        Upload an audio chunk over HTTP.

        Args:
            session_id: Session identifier
            audio: Encoded audio bytes
            chunk_index: Position of the chunk in the session

        Returns:
            Server response

        Raises:
            RequestException: If the upload fails
        """
        payload = {
            "sessionId": session_id,
            "audio": base64.b64encode(audio).decode("ascii"),
            "chunkIndex": chunk_index,
        }
        try:
            response = self.session.post(f"{self.base_url}/api/audio", json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except RequestException as e:
            raise RequestException(f"Audio upload failed: {e}")

    def request_suggestion(
        self, session_id: str, text: str = "", severity: str = "", score: Optional[float] = None
    ) -> Optional[str]:
        """
        Ask the backend for a remedial suggestion after a sentiment alert.

        Returns:
            Suggestion text, or None if the backend had none

        Raises:
            RequestException: If the request fails
        """
        payload = {"sessionId": session_id, "text": text, "severity": severity, "score": score}
        try:
            response = self.session.post(f"{self.base_url}/api/suggestions", json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except RequestException as e:
            raise RequestException(f"Failed to get suggestion: {e}")

        suggestion = data.get("suggestion") if isinstance(data, dict) else None
        return suggestion or None

    def get_wake_word_status(self) -> bool:
        """
        Get whether the backend wake-word detector is listening.

        Raises:
            RequestException: If the request fails
        """
        try:
            response = self.session.get(f"{self.base_url}/api/wake-word/status", timeout=self.timeout)
            response.raise_for_status()
            return bool(response.json().get("active", False))
        except RequestException as e:
            raise RequestException(f"Failed to get wake word status: {e}")

    def wait_for_transcript(
        self, session_id: str, min_entries: int = 1, poll_interval: float = 5, timeout: float = 300
    ) -> Dict[str, Any]:
        """
        Wait until the durable session document holds enough transcript entries.

        Args:
            session_id: Session identifier
            min_entries: Number of transcript entries to wait for
            poll_interval: Time to wait between checks (seconds)
            timeout: Maximum time to wait (seconds)

        Returns:
            The session document

        Raises:
            TimeoutError: If the entries don't arrive within the timeout
            RequestException: If any API call fails
        """
        start_time = time.time()

        while time.time() - start_time < timeout:
            document = self.get_session(session_id)
            if document and len(document.get("transcription") or []) >= min_entries:
                return document
            time.sleep(poll_interval)

        raise TimeoutError(f"Session {session_id} did not reach {min_entries} transcript entries within {timeout} seconds")
