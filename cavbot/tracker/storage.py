"""Key-value storage scopes used by the tracker.

A tracker context holds two scopes: a *local* one that outlives the process
(anonymous identity, lifetime counters, the durable event log) and a
*session* one that lives as long as the visit (session identity).  Values are
strings; callers serialise JSON themselves.

Every backend signals failure by raising ``StorageError``.  Callers treat
storage as best effort and fall back to memory.
"""

from __future__ import annotations

import contextlib
import hashlib
import os
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable


class StorageError(Exception):
    """Storage is unavailable, full, or refused the operation."""


class StorageQuotaError(StorageError):
    """A write would exceed the storage quota."""


@runtime_checkable
class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None:
        """Delete a key.  No-op if absent."""
        ...


class MemoryStorage:
    """In-process storage, optionally capped at ``quota`` bytes (UTF-8)."""

    def __init__(self, quota: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._quota is not None:
            used = sum(_size(k, v) for k, v in self._data.items() if k != key)
            if used + _size(key, value) > self._quota:
                msg = f"Quota of {self._quota} bytes exceeded writing {key!r}"
                raise StorageQuotaError(msg)
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class FileStorage:
    """Directory-backed storage: one file per key.

    Layout::

        {root}/{key}.json

    Keys outside ``[A-Za-z0-9_.-]`` are hashed into a safe file name.  Writes
    are atomic (temp file + rename) so a reader never sees a partial value.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        if key and all(c.isalnum() or c in "_.-" for c in key) and not key.startswith("."):
            name = key
        else:
            name = "k-" + hashlib.sha256(key.encode("utf-8")).hexdigest()[:24]
        return self._root / f"{name}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Cannot read {path}: {e}"
            raise StorageError(msg) from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            _atomic_write(path, value)
        except OSError as e:
            msg = f"Cannot write {path}: {e}"
            raise StorageError(msg) from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            msg = f"Cannot remove {path}: {e}"
            raise StorageError(msg) from e


def _size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


def _atomic_write(path: Path, data: str) -> None:
    """Write to a temp file in the same directory, then rename over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
