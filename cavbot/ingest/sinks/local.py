"""Local filesystem event sink.

Appends one JSON document per event to a daily file under a unified data
root with optional namespace prefix::

    {data_root}/{prefix}/events/{project}/{YYYY-MM-DD}.jsonl

When prefix is None, the path collapses to::

    {data_root}/events/{project}/{YYYY-MM-DD}.jsonl

``project`` is derived from the tenant credential and restricted to a safe
file-name alphabet.  File I/O runs in the thread pool via
``anyio.to_thread.run_sync``; appends are serialised by a lock so lines from
concurrent requests never interleave.
"""

from __future__ import annotations

import hashlib
import json
import re
from functools import partial
from pathlib import Path

import anyio
from anyio import to_thread

from cavbot.models.events import AcceptedBatch

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class LocalEventSink:
    """Append accepted events to JSON-lines files, one file per project and day."""

    def __init__(self, data_root: str | Path, prefix: str | None = None) -> None:
        base = Path(data_root)
        if prefix:
            base = base / prefix
        self._base = base / "events"
        self._lock = anyio.Lock()

    def path_for(self, batch: AcceptedBatch) -> Path:
        day = batch.received_at.date().isoformat()
        return self._base / project_dir_name(batch.project_key) / f"{day}.jsonl"

    async def write(self, batch: AcceptedBatch) -> None:
        if not batch.events:
            return
        lines = "".join(json.dumps(doc, separators=(",", ":")) + "\n" for doc in batch.event_documents())
        path = self.path_for(batch)
        async with self._lock:
            await to_thread.run_sync(partial(_append, path, lines))

    async def close(self) -> None:
        return None


def project_dir_name(project_key: str) -> str:
    """Map a tenant credential to a directory name that cannot escape the root."""
    if _SAFE_NAME.match(project_key):
        return project_key
    return "key-" + hashlib.sha256(project_key.encode("utf-8")).hexdigest()[:16]


# -- Sync helpers (run in thread pool) -----------------------------------------


def _append(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as f:
        f.write(data)
