"""Tests for health, CORS preflight and fallback routing."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from cavbot.ingest.app import _create_event_sink, app
from cavbot.ingest.deps import get_event_sink
from cavbot.ingest.sinks import LocalEventSink, LogEventSink
from cavbot.settings import CavbotSettings


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "worker": "cavbot-analytics"}


async def test_preflight_any_path(client: AsyncClient) -> None:
    for path in ("/v1/events", "/anything/at/all", "/"):
        resp = await client.options(path, headers={"Origin": "https://cavbot.io"})
        assert resp.status_code == 204
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] == "https://cavbot.io"
        assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert resp.headers["access-control-allow-headers"] == "Content-Type, X-Project-Key"
        assert resp.headers["access-control-max-age"] == "86400"


async def test_preflight_without_origin_uses_wildcard(client: AsyncClient) -> None:
    resp = await client.options("/v1/events")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == "*"


async def test_cors_headers_on_regular_responses(client: AsyncClient) -> None:
    resp = await client.get("/v1/health", headers={"Origin": "https://example.org"})
    assert resp.headers["access-control-allow-origin"] == "https://example.org"

    resp = await client.post("/v1/events", json={})
    assert resp.status_code == 401
    assert resp.headers["access-control-allow-origin"] == "*"


async def test_unknown_path_is_404_with_path(client: AsyncClient) -> None:
    resp = await client.get("/v2/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found", "path": "/v2/nowhere"}


async def test_wrong_method_is_404(client: AsyncClient) -> None:
    resp = await client.get("/v1/events")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not found", "path": "/v1/events"}

async def test_unhandled_error_is_500_with_cors_headers() -> None:
    def broken_sink():
        raise RuntimeError("sink unavailable")

    app.dependency_overrides[get_event_sink] = broken_sink
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            resp = await ac.post(
                "/v1/events",
                json={"events": []},
                headers={"X-Project-Key": "cavbot_pk_dev_demo", "Origin": "https://cavbot.io"},
            )
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}
    assert resp.headers["access-control-allow-origin"] == "https://cavbot.io"
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"


def test_create_event_sink_by_setting(tmp_path) -> None:
    assert isinstance(_create_event_sink(CavbotSettings(event_sink="log")), LogEventSink)
    assert isinstance(
        _create_event_sink(CavbotSettings(event_sink="local", data_root=str(tmp_path))),
        LocalEventSink,
    )


def test_redis_sink_requires_url() -> None:
    with pytest.raises(ValueError, match="CAVBOT_REDIS_URL"):
        _create_event_sink(CavbotSettings(event_sink="redis", redis_url=None))
