"""JSON-file cache used for large, slowly changing payloads (CoinGecko coin list)."""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Callable

from dexdata.infra.cache.base import CacheBackend

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileCache(CacheBackend):
    """One JSON file per key: ``{"expires_at": <unix ts>, "data": ...}``.

    Expired files are kept so ``get_stale`` can serve them when the upstream API is down.
    """

    def __init__(self, directory: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._dir = Path(directory)
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self._dir / f"{_UNSAFE.sub('_', key)}.json"

    def _read(self, key: str) -> dict | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable cache file %s, ignoring", path)
            return None
        return payload if isinstance(payload, dict) and "data" in payload else None

    def get(self, key: str) -> Any | None:
        payload = self._read(key)
        if payload is None:
            return None
        if payload.get("expires_at", 0) <= self._clock():
            return None
        return payload["data"]

    def get_stale(self, key: str) -> Any | None:
        payload = self._read(key)
        return payload["data"] if payload is not None else None

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        payload = {"expires_at": self._clock() + ttl, "data": value}
        self._path(key).write_text(json.dumps(payload), encoding="utf-8")

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
