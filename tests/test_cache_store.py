"""Tests for the response cache store."""

from ai_governor.services.cache_store import CacheStore


class TestCacheStore:
    """TTL behaviour of CacheStore."""

    def test_get_before_ttl_returns_value(self, clock):
        """A value read before its TTL elapses is returned unchanged."""
        cache = CacheStore(clock=clock)
        cache.put("k", {"answer": 42}, ttl_seconds=60)

        clock.advance(59)
        assert cache.get("k") == {"answer": 42}

    def test_get_after_ttl_returns_none_and_evicts(self, clock):
        """An expired entry is reported absent and removed on read."""
        cache = CacheStore(clock=clock)
        cache.put("k", "v", ttl_seconds=60)

        clock.advance(61)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_expired_entry_does_not_resurrect(self, clock):
        """A second read after expiry is still a miss."""
        cache = CacheStore(clock=clock)
        cache.put("k", "v", ttl_seconds=1)

        clock.advance(5)
        assert cache.get("k") is None
        assert cache.get("k") is None

    def test_missing_and_none_keys_are_misses(self, clock):
        cache = CacheStore(clock=clock)
        assert cache.get("nope") is None
        assert cache.get(None) is None

    def test_put_overwrites_and_refreshes_expiry(self, clock):
        """Writing the same key again replaces value and expiry."""
        cache = CacheStore(clock=clock)
        cache.put("k", "old", ttl_seconds=10)
        clock.advance(8)
        cache.put("k", "new", ttl_seconds=10)
        clock.advance(8)

        assert cache.get("k") == "new"

    def test_delete_and_clear(self, clock):
        cache = CacheStore(clock=clock)
        cache.put("a", 1, ttl_seconds=10)
        cache.put("b", 2, ttl_seconds=10)

        cache.delete("a")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0
