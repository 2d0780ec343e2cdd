"""Client-side tracker: local buffering, identities and batch delivery."""

from cavbot.tracker.batcher import DeliveryResult, EventBatcher
from cavbot.tracker.buffer import EventBuffer, RecordResult
from cavbot.tracker.context import PageContext, TrackerContext
from cavbot.tracker.storage import FileStorage, KeyValueStorage, MemoryStorage, StorageError, StorageQuotaError

__all__ = [
    "DeliveryResult",
    "EventBatcher",
    "EventBuffer",
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "PageContext",
    "RecordResult",
    "StorageError",
    "StorageQuotaError",
    "TrackerContext",
]
