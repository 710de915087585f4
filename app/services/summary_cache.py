"""
Process-wide key/value cache with per-entry expiry.

Sits in front of the rating summary read path. Expiry is checked lazily on
read; `sweep` only exists to bound memory and is driven by a background task
started in the application lifespan.
"""
import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

from app.core.logging import logger


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class SummaryCache:
    """
    TTL cache keyed by product id (or any hashable key).

    An entry written at time T is served while clock() < T + ttl and treated
    as absent from T + ttl on. Single-key operations are guarded by a lock so
    the cache can be shared between the event loop and worker threads.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        # Bumped by every delete; lets a reader detect an invalidation that
        # happened while it was computing
        self._generations: Dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        """Store value, replacing any previous entry for key."""
        ttl = self.ttl_seconds if ttl is None else ttl
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def generation(self, key: Hashable) -> int:
        """Number of deletes seen for key; pass it back to set_if_unchanged."""
        with self._lock:
            return self._generations.get(key, 0)

    def set_if_unchanged(
        self, key: Hashable, value: Any, generation: int, ttl: Optional[float] = None
    ) -> bool:
        """
        Store value only if key was not deleted since generation was read.

        A value computed before an invalidation must not be cached after it.
        Returns whether the value was stored.
        """
        ttl = self.ttl_seconds if ttl is None else ttl
        with self._lock:
            if self._generations.get(key, 0) != generation:
                return False
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            return True

    def delete(self, key: Hashable) -> bool:
        """Remove key and bump its generation. Returns whether an entry was present."""
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            return self._entries.pop(key, None) is not None

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None


async def run_sweeper(cache: SummaryCache, interval_seconds: float) -> None:
    """Periodically sweep expired entries until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = cache.sweep()
        if removed:
            logger.debug(
                "Swept expired summary cache entries",
                extra={"removed": removed, "remaining": len(cache)},
            )
