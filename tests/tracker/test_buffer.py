"""Unit tests for EventBuffer (memory queue + durable log)."""

from __future__ import annotations

import json

import pytest

from cavbot.models.events import EventRecord
from cavbot.tracker.buffer import DURABLE_CAPACITY, EVENT_LOG_KEY, MEMORY_CAPACITY, EventBuffer
from cavbot.tracker.storage import FileStorage, MemoryStorage


def _event(i: int) -> EventRecord:
    return EventRecord(name=f"evt-{i}", payload={"i": i})


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def buffer(storage: MemoryStorage) -> EventBuffer:
    return EventBuffer(storage)


@pytest.mark.parametrize("n", [0, 1, 79, 80, 81, 200])
def test_memory_queue_holds_most_recent(buffer: EventBuffer, n: int) -> None:
    for i in range(n):
        buffer.record(_event(i))

    recent = buffer.recent_events(limit=1000)
    assert len(recent) == min(n, MEMORY_CAPACITY)
    assert [e.payload["i"] for e in recent] == list(range(max(0, n - MEMORY_CAPACITY), n))


def test_durable_log_keeps_last_120(buffer: EventBuffer, storage: MemoryStorage) -> None:
    for i in range(150):
        buffer.record(_event(i))

    log = buffer.durable_events()
    assert len(log) == DURABLE_CAPACITY
    assert [e["payload"]["i"] for e in log] == list(range(30, 150))
    assert json.loads(storage.get(EVENT_LOG_KEY)) == log


def test_recent_events_limit_and_order(buffer: EventBuffer) -> None:
    for i in range(10):
        buffer.record(_event(i))

    assert [e.name for e in buffer.recent_events(3)] == ["evt-7", "evt-8", "evt-9"]
    assert buffer.recent_events(0) == []
    assert buffer.recent_events(-5) == []


def test_recent_events_is_idempotent(buffer: EventBuffer) -> None:
    for i in range(5):
        buffer.record(_event(i))

    assert buffer.recent_events(3) == buffer.recent_events(3)
    assert len(buffer) == 5


def test_default_recent_limit_is_40(buffer: EventBuffer) -> None:
    for i in range(60):
        buffer.record(_event(i))
    assert len(buffer.recent_events()) == 40


def test_storage_failure_keeps_memory_queue(broken_storage) -> None:
    buffer = EventBuffer(broken_storage)
    result = buffer.record(_event(1))

    assert result.persisted is False
    assert buffer.recent_events(5) == [result.event]
    assert buffer.durable_events() == []


def test_quota_exceeded_is_silent() -> None:
    buffer = EventBuffer(MemoryStorage(quota=64))
    results = [buffer.record(_event(i)) for i in range(5)]

    assert results[-1].persisted is False
    assert len(buffer.recent_events(10)) == 5


def test_corrupt_log_is_replaced(storage: MemoryStorage, buffer: EventBuffer) -> None:
    storage.set(EVENT_LOG_KEY, "{broken")
    assert buffer.durable_events() == []

    assert buffer.record(_event(1)).persisted is True
    assert len(buffer.durable_events()) == 1


def test_durable_log_survives_new_buffer(tmp_path) -> None:
    first = EventBuffer(FileStorage(tmp_path))
    for i in range(3):
        first.record(_event(i))

    second = EventBuffer(FileStorage(tmp_path))
    assert [e["name"] for e in second.durable_events()] == ["evt-0", "evt-1", "evt-2"]
    assert second.recent_events() == []


def test_undecodable_log_file_is_not_fatal(tmp_path) -> None:
    (tmp_path / f"{EVENT_LOG_KEY}.json").write_bytes(b"\xff\xfe garbage")
    buffer = EventBuffer(FileStorage(tmp_path))

    result = buffer.record(_event(1))

    assert result.persisted is False
    assert buffer.recent_events() == [result.event]
    assert buffer.durable_events() == []


def test_unserializable_payload_skips_durable_log(buffer: EventBuffer, storage: MemoryStorage) -> None:
    buffer.record(_event(0))
    result = buffer.record(EventRecord(name="x", payload={"obj": object()}))

    assert result.persisted is False
    assert [e.name for e in buffer.recent_events()] == ["evt-0", "x"]
    assert [e["name"] for e in buffer.durable_events()] == ["evt-0"]
    assert json.loads(storage.get(EVENT_LOG_KEY))[0]["name"] == "evt-0"
