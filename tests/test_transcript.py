"""
Tests for the transcription feed and durable-store sync.

How to run:
    poetry run pytest tests/test_transcript.py
"""

import time
from unittest.mock import MagicMock

import pytest
from requests.exceptions import ConnectionError

from harmonai.session import TranscriptEntry, TranscriptLog, TranscriptSync
from harmonai.session.transcript import entries_from_document


def test_entry_from_payload():
    entry = TranscriptEntry.from_payload({"text": "hi there", "timestamp": "1700000000", "sessionId": "s1"})

    assert entry.text == "hi there"
    assert entry.timestamp == 1700000000.0
    assert entry.session_id == "s1"
    assert entry.to_dict() == {"text": "hi there", "timestamp": 1700000000.0, "sessionId": "s1"}


def test_entry_without_timestamp_uses_now(monkeypatch):
    monkeypatch.setattr("harmonai.session.models.time.time", lambda: 42.0)
    assert TranscriptEntry.from_payload({"text": "x", "timestamp": True}).timestamp == 42.0
    assert TranscriptEntry.from_payload({"text": "x"}).timestamp == 42.0


@pytest.mark.parametrize("payload", [None, "text", {"timestamp": 1}, {"text": 5}])
def test_entry_rejects_malformed_payload(payload):
    with pytest.raises(ValueError):
        TranscriptEntry.from_payload(payload)


def test_log_keeps_arrival_order():
    log = TranscriptLog("s1")
    log.handle_event({"text": "second", "timestamp": 20})
    log.handle_event({"text": "first", "timestamp": 10})

    assert [entry.text for entry in log.entries] == ["second", "first"]
    assert log.latest_text == "first"
    assert len(log) == 2


def test_log_rejects_other_sessions():
    log = TranscriptLog("s1")

    assert log.handle_event({"text": "hello", "sessionId": "s2"}) is None
    assert log.handle_event({"text": "hello", "sessionId": "s1"}) is not None
    assert len(log) == 1


def test_resync_replaces_entries_sorted():
    log = TranscriptLog("s1")
    log.handle_event({"text": "live only", "timestamp": 99})

    log.resync([TranscriptEntry("b", 2.0), TranscriptEntry("a", 1.0)])

    assert [entry.text for entry in log.entries] == ["a", "b"]
    assert log.latest_text == "b"


def test_reset_scopes_to_new_session():
    log = TranscriptLog("s1")
    log.handle_event({"text": "old"})
    log.set_latest("partial")

    log.reset("s2")

    assert log.session_id == "s2"
    assert log.entries == []
    assert log.latest_text == ""


def test_entries_from_document_skips_bad_items():
    document = {
        "sessionId": "s1",
        "transcription": [
            {"text": "ok", "timestamp": 5},
            {"text": "no timestamp"},
            {"text": "string timestamp", "timestamp": "5"},
            {"timestamp": 6},
            "junk",
        ],
    }

    entries = entries_from_document(document)

    assert entries == [TranscriptEntry("ok", 5.0, "s1")]
    assert entries_from_document(None) == []


def test_sync_once_replaces_log():
    api = MagicMock()
    api.get_session.return_value = {
        "sessionId": "s1",
        "transcription": [{"text": "later", "timestamp": 2}, {"text": "earlier", "timestamp": 1}],
    }
    log = TranscriptLog("s1")
    sync = TranscriptSync(api, log, interval=0.01)

    assert sync.sync_once() is True
    api.get_session.assert_called_once_with("s1")
    assert log.text == "earlier later"


def test_sync_once_without_document():
    api = MagicMock()
    api.get_session.return_value = None
    sync = TranscriptSync(api, TranscriptLog("s1"))
    assert sync.sync_once() is False

    api.get_session.return_value = {"sessionId": "s1"}
    assert sync.sync_once() is False
    assert sync.document == {"sessionId": "s1"}

    assert TranscriptSync(api, TranscriptLog()).sync_once() is False


def test_sync_thread_starts_and_stops():
    api = MagicMock()
    api.get_session.return_value = {"transcription": [{"text": "hi", "timestamp": 1}]}
    log = TranscriptLog("s1")
    sync = TranscriptSync(api, log, interval=0.01)

    sync.start()
    assert sync.is_running
    deadline = time.monotonic() + 5
    while not log.text and time.monotonic() < deadline:
        time.sleep(0.01)
    sync.stop()

    assert not sync.is_running
    assert api.get_session.called
    assert log.text == "hi"


def test_sync_rejects_non_document():
    api = MagicMock()
    api.get_session.return_value = [{"text": "hi", "timestamp": 1}]
    sync = TranscriptSync(api, TranscriptLog("s1"))

    with pytest.raises(ValueError):
        sync.sync_once()
    assert entries_from_document(["not", "a", "document"]) == []


def test_sync_thread_survives_failures():
    api = MagicMock()
    responses = [ConnectionError("store unreachable"), ["unexpected"]]

    def get_session(session_id):
        if responses:
            response = responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return {"transcription": [{"text": "recovered", "timestamp": 1}]}

    api.get_session.side_effect = get_session
    log = TranscriptLog("s1")
    sync = TranscriptSync(api, log, interval=0.01)

    sync.start()
    deadline = time.monotonic() + 5
    while not log.text and time.monotonic() < deadline:
        time.sleep(0.01)
    sync.stop()

    assert log.text == "recovered"
    assert api.get_session.call_count >= 3
