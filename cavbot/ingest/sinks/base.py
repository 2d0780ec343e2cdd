"""Event sink interface.

The ingestion endpoint's contract ends at acknowledging a batch; durable
storage and aggregation belong to whatever sink is configured.  A sink
receives each accepted batch once, after validation.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cavbot.models.events import AcceptedBatch


@runtime_checkable
class EventSink(Protocol):
    """Async protocol for handing off accepted batches."""

    async def write(self, batch: AcceptedBatch) -> None:
        """Persist or forward the batch.  May raise; callers log and move on."""
        ...

    async def close(self) -> None:
        """Release connections or file handles.  No-op if none are held."""
        ...
