from dexdata.infra.cache.base import CacheBackend
from dexdata.infra.cache.file import JsonFileCache
from dexdata.infra.cache.memory import MemoryCache

__all__ = ["CacheBackend", "JsonFileCache", "MemoryCache"]
