"""
Process-scoped wiring of the review summary services.

Built once in the application lifespan and stored on app.state; tests build a
fresh set per test.
"""
from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings
from app.core.logging import logger
from app.services.aggregator import RatingAggregator
from app.services.invalidation import (
    ChangeMarkerStore,
    InMemoryChangeMarkerStore,
    InvalidationBus,
    RedisChangeMarkerStore,
    ReviewInvalidator,
)
from app.services.summaries import SummaryService
from app.services.summary_cache import SummaryCache


@dataclass
class ReviewComponents:
    cache: SummaryCache
    bus: InvalidationBus
    markers: ChangeMarkerStore
    invalidator: ReviewInvalidator
    aggregator: RatingAggregator
    summaries: SummaryService

    async def close(self) -> None:
        await self.markers.close()
        self.cache.clear()


def build_components(
    settings: Settings, markers: Optional[ChangeMarkerStore] = None
) -> ReviewComponents:
    """Construct the cache, broadcast channels, aggregator and read path."""
    cache = SummaryCache(ttl_seconds=settings.SUMMARY_CACHE_TTL_SECONDS)
    bus = InvalidationBus()

    if markers is None:
        if settings.REDIS_URL:
            markers = RedisChangeMarkerStore.from_url(settings.REDIS_URL, prefix=settings.CHANGE_MARKER_PREFIX)
            logger.info("Using Redis change markers")
        else:
            markers = InMemoryChangeMarkerStore(prefix=settings.CHANGE_MARKER_PREFIX)
            logger.info("Using in-process change markers")
            if settings.WORKERS > 1:
                # Each worker would keep its own markers; set REDIS_URL to share them
                logger.warning(
                    "In-process change markers are not shared between workers",
                    extra={"workers": settings.WORKERS},
                )

    invalidator = ReviewInvalidator(cache=cache, bus=bus, markers=markers)
    aggregator = RatingAggregator(invalidator=invalidator)
    summaries = SummaryService(cache=cache, aggregator=aggregator, bulk_max_ids=settings.BULK_SUMMARY_MAX_IDS)

    return ReviewComponents(
        cache=cache,
        bus=bus,
        markers=markers,
        invalidator=invalidator,
        aggregator=aggregator,
        summaries=summaries,
    )
