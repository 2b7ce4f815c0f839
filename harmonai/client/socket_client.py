"""
Socket.IO channel to the discussion backend.

Wraps a single ``socketio.Client`` with the reconnect policy the backend
expects and fans every incoming event out to any number of handlers.
Handlers run on the Socket.IO background thread; their exceptions are
logged and never propagate into the client.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import socketio
from requests.exceptions import RequestException
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

logger = logging.getLogger(__name__)

LIFECYCLE_EVENTS = ("connect", "disconnect", "connect_error")


class SocketChannel:
    """Socket.IO connection shared by the session, alert and wake-word components."""

    def __init__(
        self,
        url: str,
        transports: Sequence[str] = ("polling", "websocket"),
        reconnect_attempts: int = 10,
        reconnect_wait: float = 2.0,
        verify_ssl: bool = False,
        client: Optional[Any] = None,
    ):
        """
        Initialize the channel.

        Args:
            url: Server URL
            transports: Engine.IO transports in preference order
            reconnect_attempts: Reconnection attempts before giving up
            reconnect_wait: Delay between reconnection attempts (seconds)
            verify_ssl: Verify TLS certificates (False allows self-signed)
            client: Preconfigured Socket.IO client, mainly for tests
        """
        self.url = url
        self.transports = list(transports)
        self.client = client or socketio.Client(
            reconnection=True,
            reconnection_attempts=reconnect_attempts,
            reconnection_delay=reconnect_wait,
            ssl_verify=verify_ssl,
        )
        self._handlers: Dict[str, List[Callable]] = defaultdict(list)

        for event in LIFECYCLE_EVENTS:
            self._bind(event)

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)

    def on(self, event: str, handler: Callable) -> None:
        """
        Register a handler for an event.

        Handlers for the same event are called in registration order.
        """
        if event not in self._handlers and event not in LIFECYCLE_EVENTS:
            self._bind(event)
        self._handlers[event].append(handler)

    def _bind(self, event: str) -> None:
        self._handlers.setdefault(event, [])

        def dispatch(*args):
            self._dispatch(event, *args)

        self.client.on(event, dispatch)

    def _dispatch(self, event: str, *args) -> None:
        if event not in LIFECYCLE_EVENTS:
            logger.debug(f"Received {event}: {args}")
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception(f"Handler for '{event}' failed")

    def connect(self, wait: bool = True, wait_timeout: float = 5.0) -> None:
        """
        Connect to the server.

        Raises:
            SocketConnectionError: If the connection cannot be established
        """
        if self.connected:
            return

        logger.info(f"Connecting to {self.url} ({', '.join(self.transports)})")
        self.client.connect(
            self.url,
            headers={"Accept": "application/json"},
            transports=self.transports,
            wait=wait,
            wait_timeout=wait_timeout,
        )

    def disconnect(self) -> None:
        if self.connected:
            self.client.disconnect()

    def ensure_connection(self) -> bool:
        """
        Reconnect if the socket is not connected.

        Returns:
            True if the socket is connected afterwards
        """
        if self.connected:
            return True

        logger.info("Socket not connected, reconnecting...")
        try:
            self.connect()
        except SocketConnectionError as e:
            logger.warning(f"Reconnect failed: {e}")
        return self.connected

    def emit(self, event: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """
        Emit an event to the server.

        Returns:
            True if the event was handed to the transport, False when offline
        """
        if not self.connected:
            logger.warning(f"Cannot emit '{event}': socket is not connected")
            return False

        try:
            self.client.emit(event, payload if payload is not None else {})
        except SocketIOError as e:
            logger.warning(f"Failed to emit '{event}': {e}")
            return False
        return True

    def test_connection(self, api, timeout: float = 3.0) -> Tuple[bool, Optional[str]]:
        """
        Test server reachability.

        The REST health check decides reachability. The socket is tried
        afterwards and only contributes a warning message.

        Args:
            api: APIClient used for the health check
            timeout: Socket connection timeout (seconds)

        Returns:
            Tuple of (reachable, message); message is None when everything worked
        """
        try:
            health = api.health_check()
        except RequestException as e:
            logger.error(f"Health check failed: {e}")
            return False, f"Connection error: {e}"

        logger.info(f"Health check successful: {health}")

        if self.connected:
            return True, None

        try:
            self.connect(wait_timeout=timeout)
        except SocketConnectionError as e:
            logger.warning(f"Socket connection warning: {e}")
            return True, f"Server is reachable but socket had issues: {e}"

        self.disconnect()
        return True, None
