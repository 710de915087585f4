"""Tests for the rating aggregator.

Tests cover:
    - Half-up rounding to one decimal
    - compute over approved reviews only
    - compute_many totality
    - recompute write-back, invalidation and idempotence
    - Store failures surfacing as StoreUnavailableException
"""
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidReferenceException, StoreUnavailableException
from app.db.database import AsyncSessionLocal
from app.models import Product, ReviewStatus
from app.services.aggregator import RatingAggregator, RatingSummary, round_rating


class TestRoundRating:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, 0.0),
            (4, 4.0),
            (3.5, 3.5),
            (4.25, 4.3),
            (4.35, 4.4),
            (4.249, 4.2),
            (3.3333333, 3.3),
            (1.05, 1.1),
        ],
    )
    def test_rounds_half_up(self, value, expected):
        assert round_rating(value) == expected


class TestRatingSummary:
    def test_zero_count_is_empty_regardless_of_avg(self):
        assert RatingSummary.from_aggregate(None, 0) == RatingSummary(mean=0.0, count=0)
        assert RatingSummary.from_aggregate(4.0, None) == RatingSummary.empty()

    def test_from_aggregate_rounds(self):
        assert RatingSummary.from_aggregate(11 / 3, 3) == RatingSummary(mean=3.7, count=3)


class TestCompute:
    async def test_product_without_reviews(self, components, db_session, make_product):
        product = await make_product()

        summary = await components.aggregator.compute(db_session, product.id)

        assert summary == RatingSummary(mean=0.0, count=0)

    async def test_only_approved_reviews_count(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(
            product,
            [
                5,
                3,
                (1, ReviewStatus.PENDING),
                (1, ReviewStatus.REJECTED),
            ],
        )

        summary = await components.aggregator.compute(db_session, product.id)

        assert summary == RatingSummary(mean=4.0, count=2)

    async def test_compute_does_not_write(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [5, 4])

        await components.aggregator.compute(db_session, product.id)

        async with AsyncSessionLocal() as session:
            stored = await session.get(Product, product.id)
        assert stored.ratings_count == 0
        assert stored.average_rating == 0

    async def test_malformed_id_rejected(self, components, db_session):
        with pytest.raises(InvalidReferenceException) as exc_info:
            await components.aggregator.compute(db_session, "not-an-id")

        assert exc_info.value.details["validation_errors"][0]["field"] == "productId"

    async def test_accepts_string_ids(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [2])

        summary = await components.aggregator.compute(db_session, str(product.id))

        assert summary.count == 1


class TestComputeMany:
    async def test_total_over_requested_ids(self, components, db_session, make_product, add_reviews):
        rated = await make_product()
        unrated = await make_product()
        pending_only = await make_product()
        unknown = uuid4()
        await add_reviews(rated, [4, 5])
        await add_reviews(pending_only, [(5, ReviewStatus.PENDING)])

        result = await components.aggregator.compute_many(
            db_session, [rated.id, unrated.id, pending_only.id, unknown]
        )

        assert set(result) == {rated.id, unrated.id, pending_only.id, unknown}
        assert result[rated.id] == RatingSummary(mean=4.5, count=2)
        assert result[unrated.id] == RatingSummary.empty()
        assert result[pending_only.id] == RatingSummary.empty()
        assert result[unknown] == RatingSummary.empty()

    async def test_empty_input(self, components, db_session):
        assert await components.aggregator.compute_many(db_session, []) == {}

    async def test_matches_single_compute(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [1, 2, 2, 5])

        many = await components.aggregator.compute_many(db_session, [product.id])
        single = await components.aggregator.compute(db_session, product.id)

        assert many[product.id] == single


class TestRecompute:
    async def test_writes_aggregate_to_product(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [4, 5, 3])

        summary = await components.aggregator.recompute(db_session, product.id)

        assert summary == RatingSummary(mean=4.0, count=3)
        async with AsyncSessionLocal() as session:
            stored = await session.get(Product, product.id)
        assert stored.average_rating == 4.0
        assert stored.ratings_count == 3

    async def test_follows_later_approvals(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [4, 5, 3])
        await components.aggregator.recompute(db_session, product.id)

        await add_reviews(product, [2])
        summary = await components.aggregator.recompute(db_session, product.id)

        assert summary == RatingSummary(mean=3.5, count=4)

    async def test_invalidates_cached_summary(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [5])
        components.cache.set(product.id, RatingSummary(mean=1.0, count=99))
        events = []
        components.bus.subscribe(events.append)

        await components.aggregator.recompute(db_session, product.id)

        assert components.cache.get(product.id) is None
        assert [e.product_id for e in events] == [product.id]
        assert await components.markers.last_changed(product.id) == events[0].changed_at_ms

    async def test_is_idempotent(self, components, db_session, make_product, add_reviews):
        product = await make_product()
        await add_reviews(product, [1, 4, (5, ReviewStatus.PENDING)])

        first = await components.aggregator.recompute(db_session, product.id)
        second = await components.aggregator.recompute(db_session, product.id)

        assert first == second == RatingSummary(mean=2.5, count=2)

    async def test_product_without_approved_reviews_resets_to_zero(
        self, components, db_session, make_product, add_reviews
    ):
        product = await make_product()
        await add_reviews(product, [(3, ReviewStatus.REJECTED)])

        summary = await components.aggregator.recompute(db_session, product.id)

        assert summary == RatingSummary.empty()

    async def test_unknown_product_is_a_no_op(self, components, db_session):
        summary = await components.aggregator.recompute(db_session, uuid4())

        assert summary == RatingSummary.empty()

    async def test_recompute_all(self, components, db_session, make_product, add_reviews):
        first = await make_product()
        second = await make_product()
        await add_reviews(first, [5, 4])
        await add_reviews(second, [1])

        repaired = await components.aggregator.recompute_all(db_session)

        assert repaired == 2
        async with AsyncSessionLocal() as session:
            assert (await session.get(Product, first.id)).average_rating == 4.5
            assert (await session.get(Product, second.id)).ratings_count == 1


class TestStoreFailures:
    """Database errors surface as STORE_UNAVAILABLE and nothing is invalidated."""

    @pytest.fixture
    def broken_session(self):
        session = MagicMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("connection refused")))
        session.rollback = AsyncMock()
        session.commit = AsyncMock()
        return session

    async def test_compute_wraps_errors(self, components, broken_session):
        with pytest.raises(StoreUnavailableException):
            await components.aggregator.compute(broken_session, uuid4())

    async def test_compute_many_wraps_errors(self, components, broken_session):
        with pytest.raises(StoreUnavailableException):
            await components.aggregator.compute_many(broken_session, [uuid4()])

    async def test_recompute_failure_skips_invalidation(self, broken_session):
        invalidator = MagicMock()
        invalidator.invalidate = AsyncMock()

        with pytest.raises(StoreUnavailableException):
            await RatingAggregator(invalidator).recompute(broken_session, uuid4())

        invalidator.invalidate.assert_not_awaited()
