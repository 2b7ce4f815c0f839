"""
Tests for wake-word activation.

How to run:
    poetry run pytest tests/test_wake_word.py
"""

from harmonai.session import WakeWordMonitor


def test_activation_requires_connection(channel, socket_client):
    monitor = WakeWordMonitor(channel)

    assert monitor.activate() is False
    assert monitor.active is False

    channel.connect()
    assert monitor.activate() is True
    assert monitor.active is True
    assert socket_client.payloads("activate_wake_word") == [{}]

    assert monitor.deactivate() is True
    assert monitor.active is False
    assert socket_client.payloads("deactivate_wake_word") == [{}]


def test_status_mirrors_backend(channel, socket_client):
    monitor = WakeWordMonitor(channel)
    channel.connect()

    assert monitor.check_status()
    assert socket_client.payloads("check_wake_word_status") == [{}]

    socket_client.trigger("wake_word_status", {"active": True})
    assert monitor.active is True

    socket_client.trigger("wake_word_status", {"listening": False})
    assert monitor.active is True

    socket_client.trigger("wake_word_status", {"active": False})
    assert monitor.active is False


def test_detection_calls_back(channel, socket_client):
    detections = []
    monitor = WakeWordMonitor(channel, on_detected=lambda message, session_id: detections.append((message, session_id)))
    channel.connect()
    monitor.activate()

    socket_client.trigger("wake_word_detected", {"message": "Hey Harmony", "sessionId": "s1"})
    socket_client.trigger("wake_word_detected", None)

    assert detections == [("Hey Harmony", "s1"), ("Wake word detected", None)]
    assert monitor.detections == 2
    assert monitor.last_message == "Wake word detected"


def test_detection_ignored_while_inactive(channel, socket_client):
    detections = []
    monitor = WakeWordMonitor(channel, on_detected=lambda message, session_id: detections.append(message))
    channel.connect()

    socket_client.trigger("wake_word_detected", {"message": "Hey Harmony"})

    assert detections == []
    assert monitor.detections == 0
