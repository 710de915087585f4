"""Unit tests for review change notifications.

Tests cover:
    - InvalidationBus subscribe/publish/unsubscribe
    - Change marker stores (in-memory and Redis with a mocked client)
    - ReviewInvalidator fan-out and best-effort marker writes
    - Marker store selection in build_components
"""
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.config import Settings, settings
from app.services.components import build_components
from app.services.invalidation import (
    InMemoryChangeMarkerStore,
    InvalidationBus,
    RedisChangeMarkerStore,
    ReviewInvalidator,
    ReviewsChanged,
)
from app.services.summary_cache import SummaryCache


class TestInvalidationBus:
    """Tests for the in-process bus."""

    def test_publish_reaches_every_subscriber(self):
        bus = InvalidationBus()
        seen_a, seen_b = [], []
        bus.subscribe(seen_a.append)
        bus.subscribe(seen_b.append)
        event = ReviewsChanged(product_id=uuid4(), changed_at_ms=1)

        delivered = bus.publish(event)

        assert delivered == 2
        assert seen_a == [event]
        assert seen_b == [event]

    def test_unsubscribe_stops_delivery(self):
        bus = InvalidationBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)

        unsubscribe()
        bus.publish(ReviewsChanged(product_id=uuid4(), changed_at_ms=1))

        assert seen == []
        assert len(bus) == 0
        # Calling twice is harmless
        unsubscribe()

    def test_failing_subscriber_does_not_block_others(self):
        bus = InvalidationBus()
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(broken)
        bus.subscribe(seen.append)

        delivered = bus.publish(ReviewsChanged(product_id=uuid4(), changed_at_ms=1))

        assert delivered == 1
        assert len(seen) == 1


class TestInMemoryChangeMarkerStore:
    async def test_touch_and_read(self):
        markers = InMemoryChangeMarkerStore()
        product_id = uuid4()

        assert await markers.last_changed(product_id) is None

        await markers.touch(product_id, 1234)

        assert await markers.last_changed(product_id) == 1234
        assert markers.key_for(product_id) == f"reviews:changed:{product_id}"


class TestRedisChangeMarkerStore:
    """Tests against a mocked redis.asyncio client."""

    @pytest.fixture
    def mock_redis(self):
        redis = AsyncMock()
        redis.set = AsyncMock(return_value=True)
        redis.get = AsyncMock(return_value=None)
        redis.aclose = AsyncMock()
        return redis

    async def test_touch_writes_timestamp_under_prefixed_key(self, mock_redis):
        markers = RedisChangeMarkerStore(mock_redis, prefix="shop:reviews:changed:")
        product_id = uuid4()

        await markers.touch(product_id, 1700000000000)

        mock_redis.set.assert_awaited_once_with(f"shop:reviews:changed:{product_id}", "1700000000000")

    async def test_last_changed_parses_value(self, mock_redis):
        mock_redis.get = AsyncMock(return_value="1700000000123")
        markers = RedisChangeMarkerStore(mock_redis)

        assert await markers.last_changed(uuid4()) == 1700000000123

    async def test_last_changed_missing(self, mock_redis):
        markers = RedisChangeMarkerStore(mock_redis)

        assert await markers.last_changed(uuid4()) is None

    async def test_close_closes_client(self, mock_redis):
        await RedisChangeMarkerStore(mock_redis).close()

        mock_redis.aclose.assert_awaited_once()


class TestReviewInvalidator:
    """Tests for the invalidation fan-out."""

    @pytest.fixture
    def cache(self):
        return SummaryCache(ttl_seconds=60)

    async def test_invalidate_drops_cache_publishes_and_marks(self, cache):
        bus = InvalidationBus()
        markers = InMemoryChangeMarkerStore()
        seen = []
        bus.subscribe(seen.append)
        product_id = uuid4()
        cache.set(product_id, "stale summary")

        event = await ReviewInvalidator(cache, bus, markers).invalidate(product_id)

        assert cache.get(product_id) is None
        assert seen == [event]
        assert event.product_id == product_id
        assert await markers.last_changed(product_id) == event.changed_at_ms

    async def test_invalidate_without_cached_entry_still_broadcasts(self, cache):
        bus = InvalidationBus()
        seen = []
        bus.subscribe(seen.append)

        await ReviewInvalidator(cache, bus, InMemoryChangeMarkerStore()).invalidate(uuid4())

        assert len(seen) == 1

    async def test_marker_failure_is_swallowed(self, cache):
        markers = MagicMock()
        markers.touch = AsyncMock(side_effect=RedisConnectionError("redis down"))
        product_id = uuid4()
        cache.set(product_id, "stale summary")

        await ReviewInvalidator(cache, InvalidationBus(), markers).invalidate(product_id)

        assert cache.get(product_id) is None
        markers.touch.assert_awaited_once()


class TestBuildComponents:
    """Marker store selection when wiring the process."""

    @pytest.fixture
    def component_logger(self, monkeypatch):
        mock = MagicMock()
        monkeypatch.setattr("app.services.components.logger", mock)
        return mock

    def test_in_process_markers_with_several_workers_warn(self, component_logger):
        components = build_components(settings.model_copy(update={"WORKERS": 4, "REDIS_URL": None}))

        assert isinstance(components.markers, InMemoryChangeMarkerStore)
        component_logger.warning.assert_called_once()
        assert component_logger.warning.call_args.kwargs["extra"] == {"workers": 4}

    def test_single_worker_does_not_warn(self, component_logger):
        build_components(settings.model_copy(update={"WORKERS": 1, "REDIS_URL": None}))

        component_logger.warning.assert_not_called()

    def test_default_is_a_single_worker(self):
        assert Settings.model_fields["WORKERS"].default == 1
