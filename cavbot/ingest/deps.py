"""FastAPI dependency injection for the tenant credential and event sink.

Usage in route handlers::

    @router.post("/events")
    async def ingest(request: Request, project_key: ProjectKey, sink: Sink) -> ...:
        ...

The credential check runs before the handler reads the body, so a request
without ``X-Project-Key`` is rejected with 401 whatever it carries.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from cavbot.ingest.sinks.base import EventSink
from cavbot.ingest.sinks.log import LogEventSink
from cavbot.settings import CavbotSettings, get_settings

PROJECT_KEY_HEADER = "X-Project-Key"


async def require_project_key(
    settings: Annotated[CavbotSettings, Depends(get_settings)],
    x_project_key: Annotated[str | None, Header(alias=PROJECT_KEY_HEADER)] = None,
) -> str:
    """Return the tenant credential or reject the request with 401."""
    project_key = (x_project_key or "").strip()
    if not project_key:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=f"Missing {PROJECT_KEY_HEADER} header")
    if settings.project_keys and project_key not in settings.project_keys:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail=f"Invalid {PROJECT_KEY_HEADER} header")
    return project_key


def get_event_sink(request: Request) -> EventSink:
    """Return the sink installed by the app lifespan.

    Falls back to logging when the lifespan did not run (ASGI test transport).
    """
    sink: EventSink | None = getattr(request.app.state, "event_sink", None)
    if sink is None:
        sink = LogEventSink()
        request.app.state.event_sink = sink
    return sink


# -- Annotated type aliases for concise route signatures ---------------------

ProjectKey = Annotated[str, Depends(require_project_key)]
"""Annotated dependency: validated tenant credential."""

Sink = Annotated[EventSink, Depends(get_event_sink)]
"""Annotated dependency: the configured event sink."""
