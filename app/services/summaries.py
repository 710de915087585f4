"""
Cached read path for rating summaries (single product and bulk).
"""
import uuid
from typing import Any, Dict, Iterable, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import logger
from app.services.aggregator import RatingAggregator, RatingSummary
from app.services.references import parse_reference, try_parse_reference
from app.services.summary_cache import SummaryCache


class SummaryService:
    """
    Serves rating summaries from the cache, computing them on a miss.

    The read path never writes to products: the stored aggregate is already
    kept current by the aggregator's write path.
    """

    def __init__(self, cache: SummaryCache, aggregator: RatingAggregator, bulk_max_ids: int = 300):
        self.cache = cache
        self.aggregator = aggregator
        self.bulk_max_ids = bulk_max_ids

    async def summary_for(self, db: AsyncSession, product_id: Any) -> Tuple[RatingSummary, bool]:
        """Return (summary, served_from_cache) for one product."""
        pid = parse_reference(product_id, "productId")

        cached = self.cache.get(pid)
        if cached is not None:
            return cached, True

        generation = self.cache.generation(pid)
        summary = await self.aggregator.compute(db, pid)
        self.cache.set_if_unchanged(pid, summary, generation)
        return summary, False

    def normalize_ids(self, product_ids: Iterable[Any]) -> List[uuid.UUID]:
        """
        Apply the bulk request rules: keep the first bulk_max_ids entries,
        silently drop malformed ids and de-duplicate preserving order.
        """
        capped = list(product_ids)[: self.bulk_max_ids]
        parsed = (try_parse_reference(raw) for raw in capped)
        return list(dict.fromkeys(pid for pid in parsed if pid is not None))

    async def bulk_summary_for(
        self, db: AsyncSession, product_ids: Iterable[Any]
    ) -> Dict[uuid.UUID, RatingSummary]:
        """
        Summaries for many products, total over the valid ids.

        Cache hits are served directly; all misses are resolved with a single
        grouped aggregation, and every resolved id (zero summaries included)
        is written back to the cache unless it was invalidated meanwhile.
        """
        ids = self.normalize_ids(product_ids)
        result: Dict[uuid.UUID, RatingSummary] = {}
        misses: List[uuid.UUID] = []

        for pid in ids:
            cached = self.cache.get(pid)
            if cached is not None:
                result[pid] = cached
            else:
                misses.append(pid)

        if misses:
            generations = {pid: self.cache.generation(pid) for pid in misses}
            computed = await self.aggregator.compute_many(db, misses)
            for pid in misses:
                summary = computed.get(pid, RatingSummary.empty())
                self.cache.set_if_unchanged(pid, summary, generations[pid])
                result[pid] = summary

        logger.debug(
            "Bulk rating summary served",
            extra={"requested": len(ids), "cache_hits": len(ids) - len(misses), "computed": len(misses)},
        )

        # Preserve request order
        return {pid: result[pid] for pid in ids}
