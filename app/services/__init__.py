"""
Services package.
Rating aggregation, summary caching and change notification.
"""
from app.services.summary_cache import SummaryCache, run_sweeper
from app.services.invalidation import (
    InvalidationBus,
    ReviewsChanged,
    ChangeMarkerStore,
    InMemoryChangeMarkerStore,
    RedisChangeMarkerStore,
    ReviewInvalidator,
)
from app.services.aggregator import RatingAggregator, RatingSummary, round_rating
from app.services.summaries import SummaryService
from app.services.components import ReviewComponents, build_components

__all__ = [
    "SummaryCache",
    "run_sweeper",
    "InvalidationBus",
    "ReviewsChanged",
    "ChangeMarkerStore",
    "InMemoryChangeMarkerStore",
    "RedisChangeMarkerStore",
    "ReviewInvalidator",
    "RatingAggregator",
    "RatingSummary",
    "round_rating",
    "SummaryService",
    "ReviewComponents",
    "build_components",
]
