"""Unit tests for the TTL summary cache.

Tests cover:
    - get/set/delete semantics
    - Expiry boundary (served before T+TTL, absent at T+TTL)
    - Lazy eviction and sweep
    - Background sweeper task
"""
import asyncio

import pytest

from app.services.summary_cache import SummaryCache, run_sweeper


class TestSummaryCache:
    """Tests for SummaryCache."""

    @pytest.fixture
    def cache(self, clock):
        return SummaryCache(ttl_seconds=60, clock=clock)

    def test_get_missing_key_returns_none(self, cache):
        assert cache.get("absent") is None

    def test_set_then_get(self, cache):
        cache.set("p1", {"mean": 4.0, "count": 3})

        assert cache.get("p1") == {"mean": 4.0, "count": 3}
        assert "p1" in cache
        assert len(cache) == 1

    def test_entry_served_just_before_expiry(self, cache, clock):
        cache.set("p1", "value")

        clock.advance(59.999)

        assert cache.get("p1") == "value"

    def test_entry_absent_at_expiry(self, cache, clock):
        cache.set("p1", "value")

        clock.advance(60)

        assert cache.get("p1") is None
        # Lazily evicted on that read
        assert len(cache) == 0

    def test_set_overwrites_and_resets_expiry(self, cache, clock):
        cache.set("p1", "old")
        clock.advance(50)
        cache.set("p1", "new")
        clock.advance(50)

        assert cache.get("p1") == "new"

    def test_per_call_ttl_overrides_default(self, cache, clock):
        cache.set("short", "value", ttl=5)

        clock.advance(5)

        assert cache.get("short") is None

    def test_delete_existing_and_missing(self, cache):
        cache.set("p1", "value")

        assert cache.delete("p1") is True
        assert cache.get("p1") is None
        # Idempotent
        assert cache.delete("p1") is False

    def test_sweep_removes_only_expired(self, cache, clock):
        cache.set("old", 1)
        clock.advance(30)
        cache.set("young", 2)
        clock.advance(30)

        removed = cache.sweep()

        assert removed == 1
        assert len(cache) == 1
        assert cache.get("young") == 2

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert len(cache) == 0

    def test_falsy_values_are_cached(self, cache):
        cache.set("zero", 0)

        assert cache.get("zero") == 0
        assert "zero" in cache

    def test_set_if_unchanged_stores_when_not_deleted(self, cache):
        generation = cache.generation("p1")

        assert cache.set_if_unchanged("p1", "fresh", generation) is True
        assert cache.get("p1") == "fresh"

    def test_set_if_unchanged_refuses_after_delete(self, cache):
        generation = cache.generation("p1")
        cache.delete("p1")

        assert cache.set_if_unchanged("p1", "stale", generation) is False
        assert cache.get("p1") is None

    def test_delete_of_absent_key_still_bumps_generation(self, cache):
        before = cache.generation("p1")

        cache.delete("p1")

        assert cache.generation("p1") == before + 1

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_rejects_non_positive_ttl(self, ttl):
        with pytest.raises(ValueError):
            SummaryCache(ttl_seconds=ttl)


class TestRunSweeper:
    """Tests for the background sweep loop."""

    async def test_sweeper_evicts_expired_entries(self, clock):
        cache = SummaryCache(ttl_seconds=1, clock=clock)
        cache.set("p1", "value")
        clock.advance(2)

        task = asyncio.create_task(run_sweeper(cache, interval_seconds=0.01))
        try:
            for _ in range(100):
                if len(cache) == 0:
                    break
                await asyncio.sleep(0.01)
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert len(cache) == 0
