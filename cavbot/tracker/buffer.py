"""Local event buffer: a bounded memory queue plus a bounded durable log.

Every recorded event lands in both.  The memory queue serves "recent events"
introspection; the durable log survives restarts for diagnostics.  Both evict
their oldest entry on overflow.  The durable log is not a delivery queue:
nothing is ever re-sent from it.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from typing import Any

from loguru import logger
from pydantic_core import PydanticSerializationError

from cavbot.models.events import EventRecord
from cavbot.tracker.storage import KeyValueStorage, StorageError

MEMORY_CAPACITY = 80
DURABLE_CAPACITY = 120
EVENT_LOG_KEY = "cavbotEventLogV1"
DEFAULT_RECENT_LIMIT = 40


@dataclass(frozen=True)
class RecordResult:
    event: EventRecord
    persisted: bool


class EventBuffer:
    """Record events to memory and to the durable log in ``storage``.

    Never raises on storage failure: the durable write is skipped and the
    memory queue is unaffected.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        memory_capacity: int = MEMORY_CAPACITY,
        durable_capacity: int = DURABLE_CAPACITY,
        log_key: str = EVENT_LOG_KEY,
    ) -> None:
        self._storage = storage
        self._queue: deque[EventRecord] = deque(maxlen=memory_capacity)
        self._durable_capacity = durable_capacity
        self._log_key = log_key

    def record(self, event: EventRecord) -> RecordResult:
        self._queue.append(event)
        return RecordResult(event=event, persisted=self._persist(event))

    def recent_events(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[EventRecord]:
        """Return up to ``limit`` of the newest events, oldest first."""
        if limit <= 0:
            return []
        return list(self._queue)[-limit:]

    def durable_events(self) -> list[dict[str, Any]]:
        """Return the durable log as stored; ``[]`` if unreadable."""
        try:
            return self._load_log()
        except StorageError as e:
            logger.debug("Event log unreadable: {}", e)
            return []

    def __len__(self) -> int:
        return len(self._queue)

    # -- Durable log -----------------------------------------------------------

    def _persist(self, event: EventRecord) -> bool:
        try:
            entries = self._load_log()
            entries.append(event.model_dump(mode="json"))
            if len(entries) > self._durable_capacity:
                entries = entries[-self._durable_capacity :]
            self._storage.set(self._log_key, json.dumps(entries, separators=(",", ":")))
        except PydanticSerializationError as e:
            logger.warning("Event {!r} not written to the event log: {}", event.name, e)
            return False
        except StorageError as e:
            logger.debug("Event log write skipped for {!r}: {}", event.name, e)
            return False
        return True

    def _load_log(self) -> list[dict[str, Any]]:
        raw = self._storage.get(self._log_key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt event log under {!r}", self._log_key)
            return []
        return parsed if isinstance(parsed, list) else []
