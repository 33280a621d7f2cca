"""Tests for JsonFileCache expiry and stale fallback."""

import json

from dexdata.infra.cache.file import JsonFileCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_700_000_000.0

    def __call__(self) -> float:
        return self.now


class TestJsonFileCache:
    def test_roundtrip(self, tmp_path):
        cache = JsonFileCache(tmp_path)
        cache.set("coins", [{"id": "bitcoin"}], ttl=3600)
        assert cache.get("coins") == [{"id": "bitcoin"}]

    def test_creates_directory(self, tmp_path):
        cache = JsonFileCache(tmp_path / "nested" / "dir")
        cache.set("k", 1, ttl=10)
        assert (tmp_path / "nested" / "dir").is_dir()

    def test_file_layout(self, tmp_path):
        clock = FakeClock()
        cache = JsonFileCache(tmp_path, clock=clock)
        cache.set("coingecko_coinlist", ["x"], ttl=100)

        payload = json.loads((tmp_path / "coingecko_coinlist.json").read_text())
        assert payload == {"expires_at": clock.now + 100, "data": ["x"]}

    def test_key_is_sanitized(self, tmp_path):
        cache = JsonFileCache(tmp_path)
        cache.set("etherscan:tokentx:56/0xabc", [], ttl=10)
        assert cache.get("etherscan:tokentx:56/0xabc") == []
        assert len(list(tmp_path.iterdir())) == 1

    def test_expired_entry_only_served_stale(self, tmp_path):
        clock = FakeClock()
        cache = JsonFileCache(tmp_path, clock=clock)
        cache.set("k", "v", ttl=10)

        clock.now += 11
        assert cache.get("k") is None
        assert cache.get_stale("k") == "v"

    def test_corrupt_file_ignored(self, tmp_path):
        (tmp_path / "k.json").write_text("{not json")
        cache = JsonFileCache(tmp_path)
        assert cache.get("k") is None
        assert cache.get_stale("k") is None

    def test_delete(self, tmp_path):
        cache = JsonFileCache(tmp_path)
        cache.set("k", "v", ttl=10)
        cache.delete("k")
        cache.delete("k")
        assert cache.get_stale("k") is None
