"""CavBot analytics ingestion service.

Stateless per request: the handlers share nothing mutable across requests
except the configured event sink, which owns its own synchronisation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from cavbot.ingest.sinks.base import EventSink
from cavbot.ingest.sinks.local import LocalEventSink
from cavbot.ingest.sinks.log import LogEventSink
from cavbot.ingest.sinks.redis import RedisEventSink
from cavbot.log import setup_logging
from cavbot.settings import CavbotSettings, get_settings

WORKER_NAME = "cavbot-analytics"

CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type, X-Project-Key"
CORS_MAX_AGE = "86400"


def _create_event_sink(settings: CavbotSettings) -> EventSink:
    """Create the event sink backend based on configuration."""
    if settings.event_sink == "redis":
        if not settings.redis_url:
            msg = "CAVBOT_REDIS_URL must be set when CAVBOT_EVENT_SINK=redis"
            raise ValueError(msg)
        return RedisEventSink.from_url(settings.redis_url, key=settings.redis_events_key)
    if settings.event_sink == "local":
        return LocalEventSink(settings.data_root, prefix=settings.data_prefix)
    return LogEventSink()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)

    logger.info("Ingestion service starting (host={}, port={})", settings.host, settings.port)
    if settings.project_keys:
        logger.info("Tenant allow-list: {} keys", len(settings.project_keys))
    else:
        logger.warning("CAVBOT_PROJECT_KEYS not set -- any non-empty X-Project-Key is accepted")

    sink = _create_event_sink(settings)
    _app.state.event_sink = sink
    logger.info("Event sink: {}", type(sink).__name__)

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Ingestion service shutting down")
    await sink.close()


app = FastAPI(title="CavBot Analytics Ingestion", lifespan=lifespan)


# ---------------------------------------------------------------------------
# CORS: every response carries the headers; OPTIONS to any path is a 204.
# ---------------------------------------------------------------------------


def cors_headers(request: Request) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": request.headers.get("origin") or "*",
        "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
        "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
        "Access-Control-Max-Age": CORS_MAX_AGE,
    }


@app.middleware("http")
async def cors(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    headers = cors_headers(request)
    if request.method == "OPTIONS":
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)
    response = await call_next(request)
    response.headers.update(headers)
    return response


# ---------------------------------------------------------------------------
# Error bodies: always ``{"error": ...}``; unknown paths and methods are 404.
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Not found", "path": request.url.path},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def server_error(request: Request, exc: Exception) -> JSONResponse:
    # Runs outside the CORS middleware, so the headers are added here.
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
        headers=cors_headers(request),
    )


@app.exception_handler(RequestValidationError)
async def validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Request validation failed: {}", exc.errors())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request"})


# ---------------------------------------------------------------------------
# API router -- all endpoints live under /v1
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/v1")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "worker": WORKER_NAME}


from cavbot.ingest.routers.events import router as events_router  # noqa: E402

api.include_router(events_router)

app.include_router(api)
