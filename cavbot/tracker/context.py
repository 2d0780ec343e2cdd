"""Tracker context: everything one visit needs, passed explicitly.

A ``TrackerContext`` replaces ambient module state.  It is created once per
visit (first use) and owns the two storage scopes, the page context, the
event buffer, the identity cache and the device profile.  Nothing needs
tearing down: storage writes are synchronous and complete before each call
returns.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from cavbot import __version__
from cavbot.models.events import EventRecord
from cavbot.tracker.buffer import DEFAULT_RECENT_LIMIT, EventBuffer
from cavbot.tracker.identity import IdentityResolver
from cavbot.tracker.profile import DeviceProfile
from cavbot.tracker.storage import FileStorage, KeyValueStorage, MemoryStorage

if TYPE_CHECKING:
    from cavbot.settings import CavbotSettings

DEFAULT_USER_AGENT = f"cavbot-tracker/{__version__}"

_TICK = timedelta(microseconds=1)


@dataclass(frozen=True)
class PageContext:
    """Where events are being observed.  Attached to every batch."""

    page_url: str = ""
    route_path: str = ""
    page_type: str = ""
    component: str = ""
    referrer: str = ""
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def for_url(cls, url: str, **fields: str) -> PageContext:
        """Build a context whose route path is derived from ``url``."""
        return cls(page_url=url, route_path=urlsplit(url).path or "/", **fields)

    def navigate(self, url: str, referrer: str | None = None) -> PageContext:
        return replace(
            self,
            page_url=url,
            route_path=urlsplit(url).path or "/",
            referrer=self.page_url if referrer is None else referrer,
        )


class TrackerContext:
    """Per-visit state for the tracker."""

    def __init__(
        self,
        *,
        local: KeyValueStorage,
        session: KeyValueStorage | None = None,
        page: PageContext | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.local = local
        self.session = session if session is not None else MemoryStorage()
        self.page = page or PageContext()
        self.buffer = EventBuffer(self.local)
        self.identities = IdentityResolver(self.local, self.session)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._last_timestamp: datetime | None = None
        self._profile: DeviceProfile | None = None

    @classmethod
    def from_settings(cls, settings: CavbotSettings, page: PageContext | None = None) -> TrackerContext:
        """Local scope on disk under ``state_dir``; session scope in memory."""
        if page is None:
            page = PageContext(page_type=settings.page_type, component=settings.component)
        return cls(local=FileStorage(settings.state_dir), session=MemoryStorage(), page=page)

    @property
    def profile(self) -> DeviceProfile:
        if self._profile is None:
            self._profile = DeviceProfile(self.local, self.identities.session_id())
        return self._profile

    def new_event(self, name: str, payload: dict[str, Any] | None = None) -> EventRecord:
        """Create an event stamped later than every earlier event in this context."""
        now = self._clock()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + _TICK
        self._last_timestamp = now
        return EventRecord(name=name, timestamp=now, payload=payload or {})

    def snapshot(self, limit: int = DEFAULT_RECENT_LIMIT) -> dict[str, Any]:
        """Lifetime and session counters plus the most recent events."""
        return {
            **self.profile.snapshot(),
            "recentEvents": [e.model_dump(mode="json") for e in self.buffer.recent_events(limit)],
        }
