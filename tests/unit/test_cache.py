"""Unit tests for the compiled-expression cache."""

from __future__ import annotations

import threading

import pytest

from dollarsign.errors import EngineDisposedError
from dollarsign.evaluation.cache import CacheMetrics, ExpressionCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock):
    c: ExpressionCache[str] = ExpressionCache(max_size=2, ttl_seconds=10, clock=clock)
    yield c
    c.dispose()


class TestLookups:
    """Tests for hits, misses and metrics."""

    def test_get_or_create_counts_miss_then_hit(self, cache: ExpressionCache) -> None:
        calls: list[int] = []

        def factory() -> str:
            calls.append(1)
            return "unit"

        assert cache.get_or_create("k", factory) == "unit"
        assert cache.get_or_create("k", factory) == "unit"
        assert len(calls) == 1
        metrics = cache.metrics()
        assert (metrics.hits, metrics.misses, metrics.total_lookups) == (1, 1, 2)
        assert metrics.hit_rate == 0.5

    def test_empty_metrics(self) -> None:
        assert CacheMetrics(0, 0, 0, 0, 0).hit_rate == 0.0

    def test_metrics_to_dict(self, cache: ExpressionCache) -> None:
        cache.put("a", "1")
        data = cache.metrics().to_dict()
        assert data["size"] == 1
        assert set(data) == {"hits", "misses", "total_lookups", "hit_rate", "size", "evictions"}

    def test_factory_error_caches_nothing(self, cache: ExpressionCache) -> None:
        def broken() -> str:
            raise ValueError("bad")

        with pytest.raises(ValueError):
            cache.get_or_create("k", broken)
        assert "k" not in cache

    def test_clear_resets_metrics(self, cache: ExpressionCache) -> None:
        cache.get_or_create("k", lambda: "v")
        cache.clear()
        assert len(cache) == 0
        assert cache.metrics().total_lookups == 0
        cache.get_or_create("k", lambda: "v")
        assert cache.metrics().misses == 1


class TestEviction:
    """Tests for LRU and TTL expiry."""

    def test_least_recently_used_evicted(self, cache: ExpressionCache) -> None:
        cache.put("a", "1")
        cache.put("b", "2")
        cache.get("a")
        cache.put("c", "3")
        assert "a" in cache
        assert "b" not in cache
        assert cache.metrics().evictions == 1

    def test_entries_expire(self, cache: ExpressionCache, clock: FakeClock) -> None:
        cache.put("a", "1")
        clock.now = 11
        assert cache.get("a") is None
        assert cache.metrics().misses == 1

    def test_sweep_removes_expired(self, cache: ExpressionCache, clock: FakeClock) -> None:
        cache.put("a", "1")
        clock.now = 5
        cache.put("b", "2")
        clock.now = 12
        assert cache.sweep() == 1
        assert "b" in cache

    def test_sweep_interval(self) -> None:
        long_lived: ExpressionCache[str] = ExpressionCache(ttl_seconds=3600)
        short_lived: ExpressionCache[str] = ExpressionCache(ttl_seconds=40)
        no_expiry: ExpressionCache[str] = ExpressionCache(ttl_seconds=0)
        try:
            assert long_lived.sweep_interval == 300
            assert short_lived.sweep_interval == 10
            assert no_expiry.sweep_interval is None
        finally:
            long_lived.dispose()
            short_lived.dispose()
            no_expiry.dispose()

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            ExpressionCache(max_size=0)


class TestLifecycle:
    """Tests for disposal and concurrent use."""

    def test_dispose_blocks_use(self, cache: ExpressionCache) -> None:
        cache.put("a", "1")
        cache.dispose()
        cache.dispose()
        assert cache.disposed
        with pytest.raises(EngineDisposedError):
            cache.get("a")
        with pytest.raises(EngineDisposedError):
            cache.get_or_create("a", lambda: "x")

    def test_concurrent_get_or_create(self) -> None:
        cache: ExpressionCache[str] = ExpressionCache(max_size=10, ttl_seconds=0)
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            for _ in range(50):
                cache.get_or_create("shared", lambda: "unit")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 1
        assert cache.metrics().total_lookups == 400
        cache.dispose()
