"""
Rating aggregator.

Keeps each product's denormalized rating (mean of approved review ratings,
rounded to one decimal, and their count) in step with its reviews. Called
synchronously by every write that can change a product's approved-review set.
"""
import uuid
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreUnavailableException
from app.core.logging import logger
from app.models import Product, Review, ReviewStatus
from app.services.invalidation import ReviewInvalidator
from app.services.references import parse_reference


_ONE_DECIMAL = Decimal("0.1")


def round_rating(value: Optional[Any]) -> float:
    """Round half-up to one decimal; None (no rows) becomes 0.0."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class RatingSummary:
    """Mean rating and count over a product's approved reviews."""

    mean: float
    count: int

    @classmethod
    def empty(cls) -> "RatingSummary":
        return cls(mean=0.0, count=0)

    @classmethod
    def from_aggregate(cls, avg: Optional[Any], count: Optional[int]) -> "RatingSummary":
        count = int(count or 0)
        if count == 0:
            return cls.empty()
        return cls(mean=round_rating(avg), count=count)


class RatingAggregator:
    """
    Computes rating summaries and writes them back onto products.

    No locking: two recomputations racing for the same product each write a
    consistent snapshot and the last write wins.
    """

    def __init__(self, invalidator: ReviewInvalidator):
        self.invalidator = invalidator

    async def compute(self, db: AsyncSession, product_id: Any) -> RatingSummary:
        """Aggregate approved reviews for one product without writing anything."""
        pid = parse_reference(product_id, "productId")
        stmt = select(func.count(Review.id), func.avg(Review.rating)).where(
            Review.product_id == pid,
            Review.status == ReviewStatus.APPROVED,
        )
        try:
            count, avg = (await db.execute(stmt)).one()
        except SQLAlchemyError as e:
            logger.error(
                "Rating aggregation query failed",
                extra={"operation": "compute", "product_id": str(pid), "error_type": type(e).__name__},
                exc_info=True,
            )
            raise StoreUnavailableException("Rating aggregation failed") from e
        return RatingSummary.from_aggregate(avg, count)

    async def compute_many(
        self, db: AsyncSession, product_ids: Iterable[uuid.UUID]
    ) -> Dict[uuid.UUID, RatingSummary]:
        """
        Aggregate approved reviews for many products with one grouped query.

        The result holds exactly one entry per requested id; products without
        approved reviews map to RatingSummary.empty().
        """
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}

        stmt = (
            select(Review.product_id, func.count(Review.id), func.avg(Review.rating))
            .where(Review.product_id.in_(ids), Review.status == ReviewStatus.APPROVED)
            .group_by(Review.product_id)
        )
        try:
            rows = (await db.execute(stmt)).all()
        except SQLAlchemyError as e:
            logger.error(
                "Grouped rating aggregation failed",
                extra={"operation": "compute_many", "product_count": len(ids), "error_type": type(e).__name__},
                exc_info=True,
            )
            raise StoreUnavailableException("Rating aggregation failed") from e

        found = {pid: RatingSummary.from_aggregate(avg, count) for pid, count, avg in rows}
        return {pid: found.get(pid, RatingSummary.empty()) for pid in ids}

    async def recompute(self, db: AsyncSession, product_id: Any) -> RatingSummary:
        """
        Recompute a product's aggregate, persist it and invalidate readers.

        The update is committed before invalidating so that a reader which
        misses the cache right after cannot repopulate it from the old value.
        """
        pid = parse_reference(product_id, "productId")
        summary = await self.compute(db, pid)

        stmt = (
            update(Product)
            .where(Product.id == pid)
            .values(average_rating=summary.mean, ratings_count=summary.count)
        )
        try:
            result = await db.execute(stmt)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(
                "Rating write-back failed",
                extra={"operation": "recompute", "product_id": str(pid), "error_type": type(e).__name__},
                exc_info=True,
            )
            raise StoreUnavailableException("Rating write-back failed") from e

        if result.rowcount == 0:
            logger.warning(
                "Recomputed rating for unknown product",
                extra={"product_id": str(pid)},
            )

        await self.invalidator.invalidate(pid)

        logger.info(
            "Product rating recomputed",
            extra={"product_id": str(pid), "mean": summary.mean, "count": summary.count},
        )
        return summary

    async def recompute_all(self, db: AsyncSession) -> int:
        """Recompute every product; repairs aggregates left stale by a failed trigger."""
        product_ids = (await db.execute(select(Product.id))).scalars().all()
        for pid in product_ids:
            await self.recompute(db, pid)
        return len(product_ids)
