"""Unit tests for wire models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from cavbot.models.events import EventBatch, EventRecord, IncomingBatch


def test_event_name_required() -> None:
    with pytest.raises(ValidationError):
        EventRecord(name="")


def test_event_is_frozen() -> None:
    event = EventRecord(name="catch")
    with pytest.raises(ValidationError):
        event.name = "miss"  # type: ignore[misc]


def test_event_payload_defaults_to_empty() -> None:
    assert EventRecord(name="x").payload == {}
    assert EventRecord(name="x", payload=None).payload == {}


def test_batch_wire_uses_camel_case() -> None:
    ts = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
    batch = EventBatch(
        anonymous_id="anon-1",
        session_key="sess-1",
        route_path="/404",
        events=[EventRecord(name="catch", timestamp=ts, payload={"ms": 1.5})],
    )
    wire = batch.to_wire()
    assert wire["anonymousId"] == "anon-1"
    assert wire["sessionKey"] == "sess-1"
    assert wire["routePath"] == "/404"
    assert wire["events"] == [{"name": "catch", "timestamp": "2026-10-19T08:00:00Z", "payload": {"ms": 1.5}}]

    assert IncomingBatch.model_validate(wire).split_events()[0][0].timestamp == ts


def test_batch_needs_at_least_one_event() -> None:
    with pytest.raises(ValidationError):
        EventBatch(anonymous_id="a", session_key="s", events=[])


def test_incoming_batch_never_fails_on_dicts() -> None:
    incoming = IncomingBatch.model_validate({"events": "nope", "sessionKey": 5, "unknown": True})
    assert incoming.events == []
    assert incoming.session_key is None


def test_split_events_counts_malformed() -> None:
    incoming = IncomingBatch.model_validate(
        {"events": [{"name": "ok"}, {"name": "bad", "timestamp": "yesterday"}, "string", {"name": "x", "payload": []}]}
    )
    records, malformed = incoming.split_events()
    assert [r.name for r in records] == ["ok"]
    assert malformed == 3
