"""Anonymous and session identities.

The anonymous id lives in the local scope and identifies a returning visitor;
the session id lives in the session scope and identifies one visit.  Both are
created on first access and cached.  When a scope cannot be written, an
ephemeral id is generated once and kept in memory only, so it is never
carried into a later process.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from cavbot.tracker.storage import KeyValueStorage, StorageError

ANONYMOUS_ID_KEY = "cavbotAnonId"
SESSION_ID_KEY = "cavbotSessionId"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_anonymous_id() -> str:
    return "anon-" + to_base36(secrets.randbits(64))


def new_session_id() -> str:
    return "sess-" + to_base36(secrets.randbits(64)) + to_base36(time.time_ns() // 1_000_000)


@dataclass(frozen=True)
class Identity:
    value: str
    persisted: bool


class IdentityResolver:
    """Resolve and cache the anonymous and session ids for one context."""

    def __init__(self, local: KeyValueStorage, session: KeyValueStorage) -> None:
        self._local = local
        self._session = session
        self._anonymous: Identity | None = None
        self._session_id: Identity | None = None

    def anonymous_id(self) -> str:
        if self._anonymous is None:
            self._anonymous = _get_or_create(self._local, ANONYMOUS_ID_KEY, new_anonymous_id)
        return self._anonymous.value

    def session_id(self) -> str:
        if self._session_id is None:
            self._session_id = _get_or_create(self._session, SESSION_ID_KEY, new_session_id)
        return self._session_id.value

    @property
    def is_ephemeral(self) -> bool:
        """True if either identity could not be persisted."""
        return any(i is not None and not i.persisted for i in (self._anonymous, self._session_id))


def _get_or_create(storage: KeyValueStorage, key: str, factory: Callable[[], str]) -> Identity:
    try:
        existing = storage.get(key)
        if existing:
            return Identity(existing, persisted=True)
        fresh = factory()
        storage.set(key, fresh)
    except StorageError as e:
        logger.debug("Storage unavailable for {}: {} -- using ephemeral id", key, e)
        return Identity(factory(), persisted=False)
    return Identity(fresh, persisted=True)
