import time
from typing import Any, Callable, NamedTuple

from cachetools import TLRUCache

from dexdata.infra.cache.base import CacheBackend


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCache(CacheBackend):
    """Process-local cache. Expired entries are dropped by cachetools, so no stale reads."""

    def __init__(self, maxsize: int = 1024, timer: Callable[[], float] = time.monotonic) -> None:
        self._cache: TLRUCache[str, _Entry] = TLRUCache(maxsize=maxsize, ttu=_time_to_use, timer=timer)

    def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._cache[key] = _Entry(value, ttl)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def __len__(self) -> int:
        return len(self._cache)

    def clear(self, prefix: str = "") -> int:
        """Drop every entry whose key starts with ``prefix`` (all entries by default)."""
        keys = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
        for key in keys:
            self._cache.pop(key, None)
        return len(keys)
