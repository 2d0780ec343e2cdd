"""Read model served by the Summary Service and polled by dashboards.

The ingestion service does not produce this shape itself; it is the contract
the downstream aggregator fulfils from ingested events.  Unknown metric keys
are kept so new counters never require a client release.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TrendBucket(BaseModel):
    """One day of the seven-day trend."""

    model_config = ConfigDict(extra="allow")

    day: str
    sessions: int = 0
    views404: int = 0


class RouteViews(BaseModel):
    model_config = ConfigDict(extra="allow")

    route_path: str
    views: int = 0


class SummaryMetrics(BaseModel):
    """Flat-or-nested named scalars plus the optional trend and route lists."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trend7d: list[TrendBucket] | None = None
    top_routes: list[RouteViews] | None = Field(default=None, alias="topRoutes")

    def scalar(self, key: str) -> Any:
        """Look up a metric by name, following dots into nested mappings."""
        extra = self.model_extra or {}
        head, _, rest = key.partition(".")
        value = extra.get(head)
        while rest and isinstance(value, dict):
            head, _, rest = rest.partition(".")
            value = value.get(head)
        return None if rest else value


class ProjectSummary(BaseModel):
    """Body of ``GET /v1/projects/{id}/summary``."""

    model_config = ConfigDict(extra="allow")

    project: Any = None
    window: Any = None
    metrics: SummaryMetrics = Field(default_factory=SummaryMetrics)
