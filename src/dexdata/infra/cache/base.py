from abc import ABC, abstractmethod
from typing import Any


class CacheBackend(ABC):
    """Key/value cache with a per-entry TTL in seconds."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: float) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    def get_stale(self, key: str) -> Any | None:
        """Return the value even if expired, where the backend still has it."""
        return self.get(key)
