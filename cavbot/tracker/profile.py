"""Device profile: lifetime counters and best-time records.

Lifetime values are persisted in the local scope under ``cavbotMetrics``;
session values live only in memory.  Storage failure leaves the profile
working from memory for the rest of the context.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from cavbot.tracker.storage import KeyValueStorage, StorageError

METRICS_KEY = "cavbotMetrics"
VISIT_KEY = "cavbotVisitCount"
MAX_BEST_RUNS = 5


@dataclass(frozen=True)
class BestTime:
    is_session_best: bool
    is_lifetime_best: bool
    lifetime_best_ms: float | None


@dataclass
class LifetimeStats:
    visit_count: int = 1
    lifetime_catches: int = 0
    lifetime_misses: int = 0
    lifetime_rounds: int = 0
    best_ms: float | None = None
    best_runs: list[dict[str, Any]] = field(default_factory=list)
    last_visit: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "visitCount": self.visit_count,
            "lifetimeCatches": self.lifetime_catches,
            "lifetimeMisses": self.lifetime_misses,
            "lifetimeRounds": self.lifetime_rounds,
            "bestMs": self.best_ms,
            "bestRuns": list(self.best_runs),
            "lastVisit": self.last_visit,
        }

    def merge(self, raw: dict[str, Any]) -> None:
        """Adopt stored values that have the expected type; ignore the rest."""
        for attr, key in (
            ("lifetime_catches", "lifetimeCatches"),
            ("lifetime_misses", "lifetimeMisses"),
            ("lifetime_rounds", "lifetimeRounds"),
        ):
            value = raw.get(key)
            if isinstance(value, int) and not isinstance(value, bool):
                setattr(self, attr, value)
        best = raw.get("bestMs")
        if isinstance(best, int | float) and not isinstance(best, bool):
            self.best_ms = best
        if isinstance(raw.get("lastVisit"), str):
            self.last_visit = raw["lastVisit"]
        if isinstance(raw.get("bestRuns"), list):
            runs = [r for r in raw["bestRuns"] if isinstance(r, dict) and isinstance(r.get("ms"), int | float)]
            self.best_runs = runs[:MAX_BEST_RUNS]


@dataclass
class SessionStats:
    session_id: str
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    catches: int = 0
    misses: int = 0
    rounds: int = 0
    best_ms: float | None = None


class DeviceProfile:
    """Track visit and game counters for one device and one session."""

    def __init__(self, storage: KeyValueStorage, session_id: str) -> None:
        self._storage = storage
        self.lifetime = LifetimeStats()
        self.session = SessionStats(session_id=session_id)

    def begin_visit(self) -> LifetimeStats:
        """Load stored counters, bump the visit count and stamp the visit."""
        try:
            raw_visits = self._storage.get(VISIT_KEY)
            raw = self._storage.get(METRICS_KEY)
        except StorageError as e:
            logger.debug("Visit counters unavailable: {}", e)
            raw_visits = raw = None

        try:
            previous = int(raw_visits) if raw_visits else 0
        except ValueError:
            previous = 0
        self.lifetime.visit_count = previous + 1
        try:
            self._storage.set(VISIT_KEY, str(self.lifetime.visit_count))
        except StorageError as e:
            logger.debug("Visit count not persisted: {}", e)

        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                self.lifetime.merge(parsed)

        self.lifetime.last_visit = datetime.now(UTC).isoformat()
        self.persist()
        return self.lifetime

    def record_catch(self, elapsed_ms: float) -> BestTime:
        self.session.catches += 1
        self.session.rounds += 1
        self.lifetime.lifetime_catches += 1
        self.lifetime.lifetime_rounds += 1
        best = self._update_best_time(elapsed_ms)
        self.persist()
        return best

    def record_miss(self) -> None:
        self.session.misses += 1
        self.lifetime.lifetime_misses += 1
        self.persist()

    def record_round(self) -> None:
        """Count a round that ended without a catch."""
        self.session.rounds += 1
        self.lifetime.lifetime_rounds += 1
        self.persist()

    def snapshot(self) -> dict[str, Any]:
        return {"analytics": self.lifetime.to_json(), "session": asdict(self.session)}

    def persist(self) -> bool:
        try:
            self._storage.set(METRICS_KEY, json.dumps(self.lifetime.to_json()))
        except StorageError as e:
            logger.debug("Profile not persisted: {}", e)
            return False
        return True

    def _update_best_time(self, elapsed_ms: float) -> BestTime:
        if elapsed_ms < 0:
            return BestTime(False, False, self.lifetime.best_ms)

        is_session_best = self.session.best_ms is None or elapsed_ms < self.session.best_ms
        if is_session_best:
            self.session.best_ms = elapsed_ms

        is_lifetime_best = self.lifetime.best_ms is None or elapsed_ms < self.lifetime.best_ms
        if is_lifetime_best:
            self.lifetime.best_ms = elapsed_ms

        runs = [*self.lifetime.best_runs, {"ms": elapsed_ms, "at": datetime.now(UTC).isoformat()}]
        runs.sort(key=lambda r: r.get("ms", float("inf")))
        self.lifetime.best_runs = runs[:MAX_BEST_RUNS]

        return BestTime(is_session_best, is_lifetime_best, self.lifetime.best_ms)
