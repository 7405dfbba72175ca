"""Tests for the TTL caches and CacheService."""

import pytest

from mykhata.cache import CacheService, TTLCache, content_hash


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestContentHash:
    def test_sha256_hex(self):
        digest = content_hash(b"receipt")
        assert len(digest) == 64
        assert digest == content_hash(b"receipt")

    def test_differs_by_content(self):
        assert content_hash(b"a") != content_hash(b"b")


class TestTTLCache:
    def test_get_set(self, clock):
        cache = TTLCache("t", 10, clock)
        assert cache.set("k", "v")
        assert cache.get("k") == "v"
        assert cache.stats() == {"keys": 1, "hits": 1, "misses": 0, "evictions": 0}

    def test_expiry(self, clock):
        cache = TTLCache("t", 10, clock)
        cache.set("k", "v")
        clock.advance(9.9)
        assert cache.get("k") == "v"
        clock.advance(0.1)
        assert cache.get("k") is None
        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["evictions"] == 1
        assert stats["keys"] == 0

    def test_per_entry_ttl(self, clock):
        cache = TTLCache("t", 10, clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2)
        clock.advance(2)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_non_positive_ttl_is_not_stored(self, clock):
        cache = TTLCache("t", 10, clock)
        assert cache.set("k", "v", ttl=0) is False
        assert cache.get("k") is None

    def test_delete(self, clock):
        cache = TTLCache("t", 10, clock)
        cache.set("k", "v")
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_purge_expired(self, clock):
        cache = TTLCache("t", 10, clock)
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=5)
        cache.set("c", 3, ttl=20)
        clock.advance(6)
        assert cache.purge_expired() == 2
        assert cache.keys() == ["c"]

    def test_clear_resets_stats(self, clock):
        cache = TTLCache("t", 10, clock)
        cache.set("k", "v")
        cache.get("k")
        cache.clear()
        assert cache.stats() == {"keys": 0, "hits": 0, "misses": 0, "evictions": 0}


class TestCacheService:
    def test_default_ttls(self, clock):
        service = CacheService(clock=clock)
        service.set_ocr_result("h", "result")
        service.set_user_data("u1", "categories", ["c"])
        service.set_receipt_data("r1", {"id": "r1"})

        clock.advance(301)
        assert service.get_user_data("u1", "categories") is None
        assert service.get_receipt_data("r1") == {"id": "r1"}

        clock.advance(300)
        assert service.get_receipt_data("r1") is None
        assert service.get_ocr_result("h") == "result"

        clock.advance(1200)
        assert service.get_ocr_result("h") is None

    def test_unknown_cache_type(self):
        service = CacheService()
        with pytest.raises(ValueError, match="Unknown cache type"):
            service.get("k", "images")

    def test_aggregate_stats(self, clock):
        service = CacheService(clock=clock)
        service.set_ocr_result("h", "x")
        service.get_ocr_result("h")
        service.get_ocr_result("missing")
        service.delete_receipt_data("nothing")
        service.set_receipt_data("r", 1)
        service.delete_receipt_data("r")

        stats = service.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["sets"] == 2
        assert stats["deletes"] == 1
        assert stats["hit_rate"] == 0.5
        assert set(stats["caches"]) == {"user", "ocr", "receipt"}
        assert stats["caches"]["ocr"]["keys"] == 1

    def test_hit_rate_without_lookups(self):
        assert CacheService().get_stats()["hit_rate"] == 0.0

    def test_clear_user_data_only_touches_that_user(self, clock):
        service = CacheService(clock=clock)
        service.set_user_data("u1", "a", 1)
        service.set_user_data("u1", "b", 2)
        service.set_user_data("u10", "a", 3)

        assert service.clear_user_data("u1") == 2
        assert service.get_user_data("u1", "a") is None
        assert service.get_user_data("u10", "a") == 3

    def test_purge_and_clear_all(self, clock):
        service = CacheService(clock=clock)
        service.set_ocr_result("h", "x", ttl=1)
        service.set_user_data("u", "k", 1)
        clock.advance(2)
        assert service.purge_expired() == 1

        service.clear_all()
        stats = service.get_stats()
        assert stats["sets"] == 0
        assert all(c["keys"] == 0 for c in stats["caches"].values())
