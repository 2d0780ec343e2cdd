"""Fixtures for ingestion endpoint tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from cavbot.ingest.app import app


@pytest.fixture
async def client(recording_sink) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the app with a recording sink.

    The app lifespan does NOT run under ``ASGITransport``, so the sink is
    installed on ``app.state`` directly.
    """
    app.state.event_sink = recording_sink

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.event_sink = None
    app.dependency_overrides.clear()
