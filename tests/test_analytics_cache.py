"""Tests for the statistics result cache."""
import threading

from backend.app.analytics.cache import ResultCache


class FloatClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestResultCache:
    def test_miss_returns_none(self):
        cache = ResultCache(clock=FloatClock())
        assert cache.get("summary_stats") is None

    def test_value_valid_within_ttl(self):
        clock = FloatClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("summary_stats", {"total_pv": 3})

        clock.now += 59
        assert cache.get("summary_stats") == {"total_pv": 3}

        clock.now += 2
        assert cache.get("summary_stats") is None

    def test_expires_exactly_at_ttl(self):
        clock = FloatClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("k", 1)

        clock.now += 60
        assert cache.get("k") is None

    def test_put_overwrites_and_restarts_ttl(self):
        clock = FloatClock()
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("k", 1)
        clock.now += 50
        cache.put("k", 2)
        clock.now += 50

        assert cache.get("k") == 2

    def test_falsy_values_are_cached(self):
        cache = ResultCache(clock=FloatClock())
        cache.put("all_page_stats", [])
        assert cache.get("all_page_stats") == []

    def test_sweep_happens_when_limit_exceeded(self):
        clock = FloatClock()
        cache = ResultCache(ttl_seconds=60, max_entries=2, clock=clock)
        cache.put("a", 1)
        cache.put("b", 2)
        clock.now += 61
        # Third entry exceeds the limit and triggers the sweep.
        cache.put("c", 3)

        assert len(cache) == 1
        assert cache.get("c") == 3

    def test_live_entries_are_not_evicted(self):
        clock = FloatClock()
        cache = ResultCache(ttl_seconds=60, max_entries=2, clock=clock)
        for key in ("a", "b", "c", "d"):
            cache.put(key, key)

        assert len(cache) == 4
        assert all(cache.get(key) == key for key in ("a", "b", "c", "d"))

    def test_concurrent_puts(self):
        cache = ResultCache(ttl_seconds=60, max_entries=10)

        def writer(offset):
            for index in range(200):
                cache.put(f"page_stats_/p{offset}_{index}", index)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(cache) == 800
