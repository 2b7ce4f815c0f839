"""
Wake-word activation.

Detection runs on the backend. The client only toggles it, mirrors its
status and reacts to ``wake_word_detected`` by starting a session.
"""

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class WakeWordMonitor:
    """Tracks the backend wake-word detector and forwards detections."""

    def __init__(self, channel, on_detected: Optional[Callable[[str, Optional[str]], None]] = None):
        """
        Args:
            channel: SocketChannel used to talk to the detector
            on_detected: Called with (message, session_id) for every detection
        """
        self.channel = channel
        self.on_detected = on_detected
        self.active = False
        self.last_message: Optional[str] = None
        self.detections = 0
        self._lock = threading.Lock()

        channel.on("wake_word_status", self._handle_status)
        channel.on("wake_word_detected", self._handle_detected)

    def activate(self) -> bool:
        """Ask the backend to start listening for the wake word."""
        sent = self.channel.emit("activate_wake_word", {})
        if sent:
            with self._lock:
                self.active = True
        return sent

    def deactivate(self) -> bool:
        """Ask the backend to stop listening for the wake word."""
        sent = self.channel.emit("deactivate_wake_word", {})
        if sent:
            with self._lock:
                self.active = False
        return sent

    def check_status(self) -> bool:
        """Request a ``wake_word_status`` event from the backend."""
        return self.channel.emit("check_wake_word_status", {})

    def _handle_status(self, payload: Any = None) -> None:
        if not isinstance(payload, dict) or "active" not in payload:
            logger.warning(f"Invalid wake word status format: {payload!r}")
            return
        with self._lock:
            self.active = bool(payload["active"])
        logger.info(f"Wake word detection {'listening' if self.active else 'off'}")

    def _handle_detected(self, payload: Any = None) -> None:
        data = payload if isinstance(payload, dict) else {}

        with self._lock:
            if not self.active:
                logger.debug("Ignoring wake word detection while inactive")
                return
            message = data.get("message") if isinstance(data.get("message"), str) else "Wake word detected"
            self.last_message = message
            self.detections += 1

        session_id = data.get("sessionId") if isinstance(data.get("sessionId"), str) else None
        logger.info(f"Wake word detected: {message}")

        if self.on_detected:
            self.on_detected(message, session_id)
