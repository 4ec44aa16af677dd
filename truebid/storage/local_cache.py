from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Protocol, runtime_checkable

from cachetools import LRUCache

from ..observability.logging import get_logger

PROPOSAL_DATA_PREFIX = "proposal-data-"

log = get_logger("local_cache")


def cache_key(proposal_id: str) -> str:
    return f"{PROPOSAL_DATA_PREFIX}{proposal_id}"


@runtime_checkable
class LocalCache(Protocol):
    """Synchronous string key/value store that outlives the process."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryLocalCache:
    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")


class FileLocalCache:
    """
    One file per key under `directory`.

    Writes go to a temp file and are atomically renamed into place so a crash
    mid-write never leaves a half-written snapshot. Recently used values are
    memoized in an LRU so repeated reads skip the disk.
    """

    def __init__(self, directory: str | os.PathLike[str], *, memo_size: int = 64):
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._memo: LRUCache[str, str] = LRUCache(maxsize=max(1, int(memo_size)))

    def _path(self, key: str) -> Path:
        return self._dir / f"{_SAFE_NAME.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        hit = self._memo.get(key)
        if hit is not None:
            return hit
        path = self._path(key)
        try:
            value = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            log.warning("local_cache_read_failed", key=key, error=str(e))
            return None
        self._memo[key] = value
        return value

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        self._memo[key] = value
