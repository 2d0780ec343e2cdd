"""Summary Service client for dashboards.

Polls ``GET /v1/projects/{id}/summary``.  A failed poll never raises: the
caller gets ``None`` and keeps showing what it had, and ``format_metric``
renders anything missing as the placeholder ``"—"``.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import ValidationError

from cavbot.models.summary import ProjectSummary

PLACEHOLDER = "—"
DEFAULT_POLL_INTERVAL = 60.0

MetricFormat = Literal["number", "integer", "ms", "percent"]


def format_metric(value: Any, fmt: MetricFormat = "number") -> str:
    """Render a metric for display; non-numeric or missing values are ``"—"``."""
    if isinstance(value, bool) or value is None:
        return PLACEHOLDER
    try:
        num = float(value)
    except (TypeError, ValueError):
        return PLACEHOLDER
    if math.isnan(num) or math.isinf(num):
        return PLACEHOLDER

    if fmt == "integer":
        return str(round(num))
    if fmt == "ms":
        return f"{round(num):,} ms"
    if fmt == "percent":
        return f"{num:.0f}%" if num.is_integer() else f"{num:.1f}%"
    return f"{int(num):,}" if num.is_integer() else f"{num:,}"


class SummaryClient:
    """Read-only client for the Summary Service."""

    def __init__(
        self,
        api_url: str,
        project_key: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 8.0,
    ) -> None:
        self._base = api_url.rstrip("/")
        self._project_key = project_key
        self._own_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, project_id: str | int) -> ProjectSummary | None:
        url = f"{self._base}/v1/projects/{project_id}/summary"
        try:
            response = await self._client.get(url, headers={"X-Project-Key": self._project_key})
            response.raise_for_status()
            return ProjectSummary.model_validate(response.json())
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.error("Summary fetch failed for project {}: {}", project_id, e)
            return None

    async def poll(
        self,
        project_id: str | int,
        on_summary: Callable[[ProjectSummary], Awaitable[None] | None],
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Fetch now, then every ``interval`` seconds until ``stop`` is set.

        ``on_summary`` is only called with successful results.
        """
        stop = stop or asyncio.Event()
        while not stop.is_set():
            summary = await self.fetch(project_id)
            if summary is not None:
                outcome = on_summary(summary)
                if asyncio.iscoroutine(outcome):
                    await outcome
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                continue

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()
