"""Tests for audit trace parsing."""

import json

import pytest

from conftest import event_record
from crypto_usage.audit_loader import (
    AuditEvent,
    AuditFormatError,
    iter_events,
    load_events_from_json,
    load_events_from_path,
)


def _dump(payload):
    return json.dumps(payload).encode("utf-8")


class TestLoadEvents:
    """Tests for load_events_from_json."""

    def test_parses_nested_spans(self, handshake_record):
        events = load_events_from_json(_dump([handshake_record]))

        assert len(events) == 1
        event = events[0]
        assert event.context == "p1"
        assert event.origin == "test"
        assert (event.start, event.end) == (100, 500)
        assert event.name == "tls::handshake_client"
        assert len(event.spans) == 1
        assert event.spans[0].events["tls::group"] == 23

    def test_spans_default_to_empty(self):
        record = event_record("pk::sign")
        del record["spans"]

        events = load_events_from_json(_dump([record]))

        assert events[0].spans == ()

    def test_empty_array(self):
        assert load_events_from_json(b"[]") == []

    def test_rejects_invalid_json(self):
        with pytest.raises(AuditFormatError, match="not valid JSON"):
            load_events_from_json(b"[{")

    def test_rejects_non_utf8(self):
        with pytest.raises(AuditFormatError):
            load_events_from_json(b"\xff\xfe[")

    def test_rejects_top_level_object(self):
        with pytest.raises(AuditFormatError, match="JSON array"):
            load_events_from_json(_dump({"events": []}))

    def test_rejects_missing_fields(self):
        record = event_record("pk::sign")
        del record["start"]

        with pytest.raises(AuditFormatError, match="start"):
            load_events_from_json(_dump([record]))

    @pytest.mark.parametrize("value", [-1, "100", 1.5, True, None])
    def test_rejects_bad_timestamps(self, value):
        record = event_record("pk::sign")
        record["end"] = value

        with pytest.raises(AuditFormatError):
            load_events_from_json(_dump([record]))

    def test_rejects_bad_nested_span_with_location(self):
        record = event_record("tls::handshake_client", spans=[{"context": "p1"}])

        with pytest.raises(AuditFormatError, match=r"\$\[0\]\.spans\[0\]"):
            load_events_from_json(_dump([record]))

    def test_rejects_non_object_events(self):
        record = event_record("pk::sign")
        record["events"] = ["name"]

        with pytest.raises(AuditFormatError, match="events"):
            load_events_from_json(_dump([record]))

    def test_load_from_path(self, tmp_path, handshake_record):
        path = tmp_path / "audit.json"
        path.write_bytes(_dump([handshake_record, handshake_record]))

        events = load_events_from_path(path)

        assert len(events) == 2


class TestAuditEvent:
    """Tests for AuditEvent helpers."""

    def test_name_falls_back_to_unknown(self):
        event = AuditEvent(context="p1", origin="x", start=0, end=1, events={"name": 5})
        assert event.name == "unknown"

        event = AuditEvent(context="p1", origin="x", start=0, end=1, events={})
        assert event.name == "unknown"

    def test_iter_events_is_preorder(self, handshake_record):
        events = load_events_from_json(_dump([handshake_record, event_record("pk::sign")]))

        names = [event.name for event in iter_events(events)]

        assert names == ["tls::handshake_client", "tls::key_exchange", "pk::sign"]
