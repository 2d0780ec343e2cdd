"""Event sink implementations for accepted batches."""

from cavbot.ingest.sinks.base import EventSink
from cavbot.ingest.sinks.local import LocalEventSink
from cavbot.ingest.sinks.log import LogEventSink
from cavbot.ingest.sinks.redis import RedisEventSink

__all__ = ["EventSink", "LocalEventSink", "LogEventSink", "RedisEventSink"]
