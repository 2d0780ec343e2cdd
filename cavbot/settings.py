"""Configuration loaded from CAVBOT_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CavbotSettings(BaseSettings):
    """Settings for the ingestion service and the tracker.

    All fields are read from environment variables with the ``CAVBOT_``
    prefix.  For example, ``CAVBOT_EVENT_SINK=local`` maps to ``event_sink``.
    List values (``project_keys``) are given as JSON, e.g.
    ``CAVBOT_PROJECT_KEYS='["cavbot_pk_web_main"]'``.
    """

    model_config = SettingsConfigDict(
        env_prefix="CAVBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False
    """Emit one JSON document per log line instead of coloured text."""

    # -- Ingestion server ------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8787

    project_keys: set[str] = set()
    """Accepted tenant credentials.  Empty means any non-empty key is accepted."""

    event_sink: Literal["log", "local", "redis"] = "log"
    """Where accepted batches are handed off after acknowledgement."""

    data_root: str = "./data"
    """Root directory for the ``local`` event sink."""

    data_prefix: str | None = None
    """Optional namespace inserted as ``{data_root}/{data_prefix}/events/...``."""

    redis_url: str | None = None
    """Redis connection string.  Required when ``event_sink = "redis"``."""

    redis_events_key: str = "cavbot:events"

    # -- Tracker (client side) -------------------------------------------------
    api_url: str = "https://api.cavbot.io"
    project_key: str = "cavbot_pk_dev_demo"

    delivery_timeout: float = 8.0
    """Deadline in seconds for a single delivery attempt."""

    state_dir: str = "~/.cavbot"
    """Directory backing the tracker's persistent (local) storage scope."""

    page_type: str = "404-control-room"
    component: str = "404-game"


@lru_cache(maxsize=1)
def get_settings() -> CavbotSettings:
    """Return a cached settings instance.

    Call ``get_settings.cache_clear()`` in tests after changing env vars.
    """
    return CavbotSettings()
