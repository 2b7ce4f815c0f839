"""
Shared fakes for the test suite.

No test needs a backend, a network connection or an audio device: the
Socket.IO client, the REST client and the microphone are replaced by the
fakes below.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from harmonai.client import APIClient, SocketChannel


class FakeSocketClient:
    """Stand-in for socketio.Client that records emits and lets tests push events."""

    def __init__(self, connected: bool = False):
        self.connected = connected
        self.handlers = {}
        self.emitted = []
        self.connect_calls = []
        self.connect_error = None

    def on(self, event, handler):
        self.handlers[event] = handler

    def connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        self.trigger("connect")

    def disconnect(self):
        self.connected = False
        self.trigger("disconnect")

    def emit(self, event, data=None):
        self.emitted.append((event, data))

    def trigger(self, event, *args):
        handler = self.handlers.get(event)
        if handler is not None:
            handler(*args)

    def drop(self):
        """Simulate a lost connection."""
        self.connected = False
        self.trigger("disconnect", "transport close")

    def payloads(self, event):
        return [data for name, data in self.emitted if name == event]


class FakeAudioSource:
    """Audio source whose buffers are fed by the test."""

    def __init__(self, on_buffer):
        self.on_buffer = on_buffer
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def feed(self, samples):
        self.on_buffer(np.asarray(samples, dtype=np.float32))


class FakeAudioFactory:
    def __init__(self):
        self.sources = []

    def __call__(self, on_buffer):
        source = FakeAudioSource(on_buffer)
        self.sources.append(source)
        return source

    @property
    def last(self):
        return self.sources[-1]


@pytest.fixture
def socket_client():
    return FakeSocketClient()


@pytest.fixture
def channel(socket_client):
    return SocketChannel("http://test", client=socket_client)


@pytest.fixture
def api():
    mock = MagicMock(spec=APIClient)
    mock.create_session.return_value = "session-1"
    mock.get_session.return_value = None
    mock.request_suggestion.return_value = "Take a short pause and restate the shared goal."
    return mock


@pytest.fixture
def audio_factory():
    return FakeAudioFactory()
