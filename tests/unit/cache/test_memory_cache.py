"""Tests for the cachetools-backed MemoryCache with a controllable clock."""

from dexdata.infra.cache.memory import MemoryCache


class FakeTimer:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMemoryCache:
    def test_get_missing(self):
        assert MemoryCache().get("nope") is None

    def test_set_and_get(self):
        cache = MemoryCache()
        cache.set("k", {"a": 1}, ttl=60)
        assert cache.get("k") == {"a": 1}

    def test_entry_expires_after_ttl(self):
        timer = FakeTimer()
        cache = MemoryCache(timer=timer)
        cache.set("k", "v", ttl=10)

        timer.now += 9
        assert cache.get("k") == "v"
        timer.now += 2
        assert cache.get("k") is None

    def test_ttl_is_per_entry(self):
        timer = FakeTimer()
        cache = MemoryCache(timer=timer)
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=500)

        timer.now += 60
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_delete(self):
        cache = MemoryCache()
        cache.set("k", "v", ttl=60)
        cache.delete("k")
        cache.delete("never-set")
        assert cache.get("k") is None

    def test_stale_reads_not_served(self):
        timer = FakeTimer()
        cache = MemoryCache(timer=timer)
        cache.set("k", "v", ttl=1)
        timer.now += 5
        assert cache.get_stale("k") is None

    def test_clear_by_prefix(self):
        cache = MemoryCache()
        cache.set("token_info_56_0xa", 1, ttl=60)
        cache.set("token_info_1_0xa", 2, ttl=60)
        cache.set("etherscan:tokentx:56", 3, ttl=60)

        assert cache.clear("token_info_") == 2
        assert cache.get("token_info_56_0xa") is None
        assert cache.get("etherscan:tokentx:56") == 3

    def test_clear_all(self):
        cache = MemoryCache()
        cache.set("a", 1, ttl=60)
        cache.set("b", 2, ttl=60)

        cache.clear()

        assert len(cache) == 0
