"""
Tests for the three-tier configuration lookup.

How to run:
    poetry run pytest tests/test_config.py
"""

import logging

from harmonai.config import ConfigManager, configure_logging


def test_default_used_when_env_missing(monkeypatch):
    monkeypatch.delenv("SERVER_URL", raising=False)
    assert ConfigManager.get("SERVER_URL") == "http://localhost:5555"
    assert ConfigManager.is_using_default("SERVER_URL")


def test_env_beats_default(monkeypatch):
    monkeypatch.setenv("SERVER_URL", "http://backend:9000")
    assert ConfigManager.get_display_value("SERVER_URL") == ("http://backend:9000", "env")
    assert ConfigManager.is_using_env("SERVER_URL")


def test_override_beats_env(monkeypatch):
    monkeypatch.setenv("SERVER_URL", "http://backend:9000")
    assert ConfigManager.get("SERVER_URL", "http://override:1") == "http://override:1"
    assert ConfigManager.is_using_override("SERVER_URL", "http://override:1")


def test_empty_values_fall_through(monkeypatch):
    monkeypatch.setenv("AUDIO_MODE", "")
    assert ConfigManager.get("AUDIO_MODE", "") == "stream"


def test_typed_helpers(monkeypatch):
    monkeypatch.setenv("AUDIO_BUFFER_SIZE", "2048")
    monkeypatch.setenv("SOCKET_VERIFY_SSL", "Yes")
    monkeypatch.delenv("ALERT_SEVERITIES", raising=False)

    assert ConfigManager.get_int("AUDIO_BUFFER_SIZE") == 2048
    assert ConfigManager.get_float("AUDIO_CHUNK_SECONDS", "1.5") == 1.5
    assert ConfigManager.get_bool("SOCKET_VERIFY_SSL") is True
    assert ConfigManager.get_bool("SOCKET_VERIFY_SSL", False) is False
    assert ConfigManager.get_list("ALERT_SEVERITIES") == ["negative", "high"]
    assert ConfigManager.get_list("SOCKET_TRANSPORTS", "websocket") == ["websocket"]


def test_unknown_key_defaults_to_empty(monkeypatch):
    monkeypatch.delenv("NOT_A_REAL_KEY", raising=False)
    assert ConfigManager.get("NOT_A_REAL_KEY") == ""


def test_configure_logging_quiets_socketio():
    configure_logging("INFO")
    assert logging.getLogger("engineio").level == logging.WARNING
    assert logging.getLogger("socketio").level == logging.WARNING

    configure_logging("DEBUG")
    assert logging.getLogger("socketio").level == logging.DEBUG
