"""
Tests for the Socket.IO channel.

How to run:
    poetry run pytest tests/test_socket_client.py
"""

from unittest.mock import MagicMock

from requests.exceptions import ConnectionError
from socketio.exceptions import BadNamespaceError
from socketio.exceptions import ConnectionError as SocketConnectionError

from harmonai.client import SocketChannel


def test_connect_passes_transport_options(socket_client):
    channel = SocketChannel("http://test", transports=["websocket"], client=socket_client)

    channel.connect(wait_timeout=2.0)

    url, kwargs = socket_client.connect_calls[0]
    assert url == "http://test"
    assert kwargs["transports"] == ["websocket"]
    assert kwargs["wait_timeout"] == 2.0
    assert kwargs["headers"] == {"Accept": "application/json"}
    assert channel.connected

    channel.connect()
    assert len(socket_client.connect_calls) == 1


def test_multiple_handlers_per_event(channel, socket_client):
    calls = []
    channel.on("transcription", lambda data: calls.append(("first", data)))
    channel.on("transcription", lambda data: calls.append(("second", data)))

    socket_client.trigger("transcription", {"text": "hi"})

    assert calls == [("first", {"text": "hi"}), ("second", {"text": "hi"})]


def test_handler_errors_are_contained(channel, socket_client):
    calls = []

    def broken(data):
        raise KeyError("text")

    channel.on("transcription", broken)
    channel.on("transcription", calls.append)

    socket_client.trigger("transcription", {"x": 1})

    assert calls == [{"x": 1}]


def test_lifecycle_handlers(channel, socket_client):
    events = []
    channel.on("connect", lambda: events.append("connect"))
    channel.on("disconnect", lambda *args: events.append("disconnect"))

    channel.connect()
    socket_client.drop()

    assert events == ["connect", "disconnect"]


def test_emit_requires_connection(channel, socket_client):
    assert channel.emit("start_session", {"sessionId": "s1"}) is False
    assert socket_client.emitted == []

    channel.connect()
    assert channel.emit("start_session", {"sessionId": "s1"}) is True
    assert channel.emit("check_wake_word_status") is True
    assert socket_client.emitted == [("start_session", {"sessionId": "s1"}), ("check_wake_word_status", {})]


def test_emit_failure_returns_false(channel, socket_client):
    channel.connect()
    socket_client.emit = MagicMock(side_effect=BadNamespaceError("/ is not a connected namespace."))

    assert channel.emit("audio_data", {}) is False


def test_ensure_connection(channel, socket_client):
    socket_client.connect_error = SocketConnectionError("refused")
    assert channel.ensure_connection() is False

    socket_client.connect_error = None
    assert channel.ensure_connection() is True
    assert channel.ensure_connection() is True
    assert len(socket_client.connect_calls) == 2


def test_connection_check_healthy(channel, socket_client, api):
    api.health_check.return_value = {"status": "ok"}

    assert channel.test_connection(api) == (True, None)
    assert not channel.connected


def test_connection_check_server_down(channel, socket_client, api):
    api.health_check.side_effect = ConnectionError("Unable to connect to server")

    ok, message = channel.test_connection(api)

    assert ok is False
    assert message.startswith("Connection error:")
    assert socket_client.connect_calls == []


def test_connection_check_socket_warning(channel, socket_client, api):
    api.health_check.return_value = {"status": "ok"}
    socket_client.connect_error = SocketConnectionError("handshake failed")

    ok, message = channel.test_connection(api, timeout=1.0)

    assert ok is True
    assert "socket had issues" in message
