"""Shared test fixtures.

No external services are needed: the ingestion app is exercised in-process
through ``httpx.ASGITransport`` and tracker storage lives in memory or under
``tmp_path``.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from cavbot.models.events import AcceptedBatch
from cavbot.settings import get_settings
from cavbot.tracker.storage import StorageError


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Point settings at a temp directory and drop any cached instance."""
    monkeypatch.setenv("CAVBOT_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("CAVBOT_DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.delenv("CAVBOT_PROJECT_KEYS", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class BrokenStorage:
    """Storage that refuses everything, like a sandboxed browser context."""

    def get(self, key: str) -> str | None:
        msg = "storage disabled"
        raise StorageError(msg)

    def set(self, key: str, value: str) -> None:
        msg = "storage disabled"
        raise StorageError(msg)

    def remove(self, key: str) -> None:
        msg = "storage disabled"
        raise StorageError(msg)


class RecordingSink:
    """Event sink that keeps every batch it receives."""

    def __init__(self) -> None:
        self.batches: list[AcceptedBatch] = []
        self.closed = False

    async def write(self, batch: AcceptedBatch) -> None:
        self.batches.append(batch)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def broken_storage() -> BrokenStorage:
    return BrokenStorage()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
