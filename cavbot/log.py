"""Logging for the ingestion service and the tracker tools.

loguru owns the output.  Records from stdlib loggers (uvicorn, httpx,
redis) are forwarded with their original logger name and line, so a
request log and a delivery log read the same.  ``json_logs`` switches the
sink to one JSON document per line for log shippers.

Tenant credentials never appear in full: pass them through ``mask_key``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any, TextIO

from loguru import logger

TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Per-request and per-connection chatter; warnings still come through.
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "redis")

MASK_VISIBLE = 8


class _StdlibBridge(logging.Handler):
    """Re-emit a stdlib record through loguru, keeping its origin."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        def origin(entry: dict[str, Any]) -> None:
            entry.update(name=record.name, function=record.funcName, line=record.lineno)

        logger.patch(origin).opt(exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    *,
    json_logs: bool = False,
    sink: TextIO | Callable[[str], Any] = sys.stderr,
) -> None:
    """Make loguru the single sink for this process.

    Calling it again replaces the previous configuration.
    """
    level = level.upper()

    handler: dict[str, Any] = {"sink": sink, "level": level}
    if json_logs:
        handler["serialize"] = True
    else:
        handler["format"] = TEXT_FORMAT
    logger.configure(handlers=[handler])

    logging.basicConfig(handlers=[_StdlibBridge()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging configured (level={}, json={})", level, json_logs)


def mask_key(project_key: str) -> str:
    """Shorten a tenant credential for log output.

    Keys no longer than the visible prefix are hidden entirely.
    """
    if len(project_key) <= MASK_VISIBLE:
        return "..."
    return project_key[:MASK_VISIBLE] + "..."
