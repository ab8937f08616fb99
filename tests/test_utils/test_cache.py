"""Tests for the handle cache."""

import pytest

from recordql.utils.cache import HandleCache, compute_config_hash


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestComputeConfigHash:
    """Tests for compute_config_hash."""

    def test_key_order_irrelevant(self):
        assert compute_config_hash({"a": 1, "b": 2}) == compute_config_hash({"b": 2, "a": 1})

    def test_different_configs(self):
        assert compute_config_hash({"url": "sqlite://"}) != compute_config_hash({"url": "sqlite:///x.db"})


class TestHandleCache:
    """Tests for HandleCache."""

    def test_get_or_create_reuses(self):
        cache = HandleCache()
        created = []

        def factory():
            created.append(object())
            return created[-1]

        first = cache.get_or_create({"url": "sqlite://"}, factory)
        second = cache.get_or_create({"url": "sqlite://"}, factory)
        assert first is second
        assert len(created) == 1

    def test_ttl_expiry(self, clock):
        closed = []
        cache = HandleCache(ttl_seconds=10, close=closed.append, clock=clock)
        cache.put("k", "handle")
        clock.advance(5)
        assert cache.get("k") == "handle"
        clock.advance(11)
        assert cache.get("k") is None
        assert closed == ["handle"]

    def test_access_refreshes_ttl(self, clock):
        cache = HandleCache(ttl_seconds=10, clock=clock)
        cache.put("k", "handle")
        for _ in range(3):
            clock.advance(8)
            assert cache.get("k") == "handle"

    def test_lru_eviction(self, clock):
        closed = []
        cache = HandleCache(max_size=2, close=closed.append, clock=clock)
        cache.put("a", "A")
        cache.put("b", "B")
        cache.get("a")
        cache.put("c", "C")
        assert "b" not in cache
        assert "a" in cache and "c" in cache
        assert closed == ["B"]

    def test_health_check(self):
        healthy = {"A": False}
        closed = []
        cache = HandleCache(health_check=lambda h: healthy[h], close=closed.append)
        cache.put("a", "A")
        assert cache.get("a") is None
        assert closed == ["A"]
        assert len(cache) == 0

    def test_evict_stale(self, clock):
        cache = HandleCache(ttl_seconds=10, clock=clock)
        cache.put("old", 1)
        clock.advance(6)
        cache.put("new", 2)
        clock.advance(6)
        assert cache.evict_stale() == 1
        assert "new" in cache

    def test_invalidate_and_close(self):
        closed = []
        cache = HandleCache(close=closed.append)
        cache.put("a", "A")
        cache.put("b", "B")
        cache.invalidate("a")
        cache.invalidate("missing")
        assert closed == ["A"]
        cache.close()
        assert closed == ["A", "B"]
        assert len(cache) == 0

    def test_close_errors_are_contained(self):
        def explode(handle):
            raise RuntimeError("close failed")

        cache = HandleCache(close=explode)
        cache.put("a", "A")
        cache.invalidate("a")
        assert len(cache) == 0

    def test_replacing_closes_previous(self):
        closed = []
        cache = HandleCache(close=closed.append)
        cache.put("a", "A1")
        cache.put("a", "A2")
        assert closed == ["A1"]
        assert cache.get("a") == "A2"

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            HandleCache(max_size=0)

    def test_caches_connections(self, engine):
        cache = HandleCache(close=lambda c: c.close())
        conn = cache.get_or_create({"url": "sqlite://"}, engine.connect)
        assert cache.get_or_create({"url": "sqlite://"}, engine.connect) is conn
        cache.close()
        assert conn.closed
