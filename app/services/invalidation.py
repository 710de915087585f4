"""
Review change notifications.

When a product's approved-review set changes, every reader holding a cached
summary has to learn that its copy may be stale. Two channels carry that
signal:

- InvalidationBus: in-process publish/subscribe, delivered synchronously.
- ChangeMarkerStore: a durable timestamped marker per product
  ("reviews:changed:<product_id>") that other processes can read to notice
  the change without subscribing to this one.

Neither channel carries summary data; recipients re-fetch.
"""
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from app.core.logging import logger
from app.services.summary_cache import SummaryCache


@dataclass(frozen=True)
class ReviewsChanged:
    """Event published when a product's approved reviews may have changed."""

    product_id: uuid.UUID
    changed_at_ms: int


Subscriber = Callable[[ReviewsChanged], None]


def now_ms() -> int:
    return int(time.time() * 1000)


class InvalidationBus:
    """Synchronous in-process event bus for ReviewsChanged events."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ReviewsChanged) -> int:
        """Deliver event to every subscriber. Returns the number delivered."""
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for callback in subscribers:
            try:
                callback(event)
                delivered += 1
            except Exception:
                # One broken listener must not starve the rest
                logger.exception(
                    "Invalidation subscriber failed",
                    extra={"product_id": str(event.product_id)},
                )
        return delivered

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)


class ChangeMarkerStore(ABC):
    """Durable per-product "last changed" markers."""

    def __init__(self, prefix: str = "reviews:changed:"):
        self.prefix = prefix

    def key_for(self, product_id: uuid.UUID) -> str:
        return f"{self.prefix}{product_id}"

    @abstractmethod
    async def touch(self, product_id: uuid.UUID, changed_at_ms: int) -> None:
        """Record that product_id changed at changed_at_ms."""

    @abstractmethod
    async def last_changed(self, product_id: uuid.UUID) -> Optional[int]:
        """Return the last recorded change time in ms, or None."""

    async def close(self) -> None:
        return None


class InMemoryChangeMarkerStore(ChangeMarkerStore):
    """Marker store for single-process deployments and tests."""

    def __init__(self, prefix: str = "reviews:changed:"):
        super().__init__(prefix)
        self._markers: Dict[str, int] = {}

    async def touch(self, product_id: uuid.UUID, changed_at_ms: int) -> None:
        self._markers[self.key_for(product_id)] = changed_at_ms

    async def last_changed(self, product_id: uuid.UUID) -> Optional[int]:
        return self._markers.get(self.key_for(product_id))


class RedisChangeMarkerStore(ChangeMarkerStore):
    """Marker store shared by every process pointed at the same Redis."""

    def __init__(self, client: aioredis.Redis, prefix: str = "reviews:changed:"):
        super().__init__(prefix)
        self.client = client

    @classmethod
    def from_url(cls, url: str, prefix: str = "reviews:changed:") -> "RedisChangeMarkerStore":
        return cls(aioredis.from_url(url, decode_responses=True), prefix=prefix)

    async def touch(self, product_id: uuid.UUID, changed_at_ms: int) -> None:
        await self.client.set(self.key_for(product_id), str(changed_at_ms))

    async def last_changed(self, product_id: uuid.UUID) -> Optional[int]:
        raw = await self.client.get(self.key_for(product_id))
        if raw is None:
            return None
        return int(raw)

    async def close(self) -> None:
        await self.client.aclose()


class ReviewInvalidator:
    """
    Fan-out for a product whose summary just went stale.

    Order matters: the local cache entry is dropped first so that the very
    next read in this process recomputes, then listeners and other processes
    are told.
    """

    def __init__(self, cache: SummaryCache, bus: InvalidationBus, markers: ChangeMarkerStore):
        self.cache = cache
        self.bus = bus
        self.markers = markers

    async def invalidate(self, product_id: uuid.UUID) -> ReviewsChanged:
        event = ReviewsChanged(product_id=product_id, changed_at_ms=now_ms())

        self.cache.delete(product_id)
        self.bus.publish(event)

        try:
            await self.markers.touch(product_id, event.changed_at_ms)
        except (RedisError, OSError) as e:
            # Best effort: the cache is already coherent in this process
            logger.warning(
                "Failed to write review change marker",
                extra={
                    "product_id": str(product_id),
                    "error_type": type(e).__name__,
                },
            )

        logger.info(
            "Review summary invalidated",
            extra={"product_id": str(product_id), "changed_at_ms": event.changed_at_ms},
        )
        return event
