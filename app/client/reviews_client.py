"""
Async HTTP client for the reviews API.

Keeps its own short-lived summary cache (shorter than the server's) with
in-flight de-duplication, and drops cached summaries when a review is
submitted through it or when an InvalidationBus it listens on fires.

Usage:
    async with ReviewsClient("https://shop.example.com") as client:
        summaries = await client.bulk_summary(product_ids)
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.core.config import settings
from app.core.logging import logger
from app.services.invalidation import InvalidationBus, ReviewsChanged, now_ms
from app.services.summary_cache import SummaryCache


class ReviewsClientError(Exception):
    """Request failed; message is safe to show to a shopper."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


_SUBMIT_ERROR_MESSAGES = {
    400: "Invalid review data.",
    403: "Only verified purchasers can review this product.",
    404: "Product not found.",
    409: "You already reviewed this product.",
    422: "Invalid review data.",
}


@dataclass(frozen=True)
class ClientSummary:
    average_rating: float
    review_count: int

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "ClientSummary":
        payload = payload or {}
        return cls(
            average_rating=float(payload.get("averageRating", payload.get("avg", 0)) or 0),
            review_count=int(payload.get("reviewCount", payload.get("total", 0)) or 0),
        )


ZERO_SUMMARY = ClientSummary(average_rating=0.0, review_count=0)


@dataclass
class ReviewPage:
    reviews: List[Dict[str, Any]]
    page: int
    limit: int
    total: int
    pages: int
    distribution: Dict[str, int] = field(default_factory=dict)


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message")
    return None


class ReviewsClient:
    """Client for the storefront review endpoints."""

    def __init__(
        self,
        base_url: str = "",
        http: Optional[httpx.AsyncClient] = None,
        bus: Optional[InvalidationBus] = None,
        ttl_seconds: Optional[float] = None,
        timeout: float = 20.0,
        bulk_max_ids: Optional[int] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.ttl_seconds = ttl_seconds or settings.CLIENT_SUMMARY_TTL_SECONDS
        self.cache = SummaryCache(ttl_seconds=self.ttl_seconds)
        self.bulk_max_ids = bulk_max_ids or settings.BULK_SUMMARY_MAX_IDS
        self.bus = bus
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._inflight: Dict[str, "asyncio.Future[ClientSummary]"] = {}
        self._fetched_at_ms: Dict[str, int] = {}
        self._unsubscribe = bus.subscribe(self._on_reviews_changed) if bus else None

    async def __aenter__(self) -> "ReviewsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._owns_http:
            await self._http.aclose()

    @staticmethod
    def _key(product_id: Any) -> str:
        # Hex, braced and upper-case spellings of one UUID share a cache entry
        raw = str(product_id).strip()
        try:
            return str(uuid.UUID(raw))
        except ValueError:
            return raw.lower()

    def _on_reviews_changed(self, event: ReviewsChanged) -> None:
        self.cache.delete(self._key(event.product_id))

    def invalidate(self, product_id: Any) -> None:
        """Forget the cached summary for product_id."""
        self.cache.delete(self._key(product_id))

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http.request(method, f"/api{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise ReviewsClientError("The server took too long to respond. Try again.") from e
        except httpx.HTTPError as e:
            raise ReviewsClientError("Could not reach the server. Try again.") from e
        return response

    async def list(
        self,
        product_id: Any,
        page: int = 1,
        limit: int = 10,
        sort: str = "new",
    ) -> ReviewPage:
        """GET /api/products/{productId}/reviews"""
        response = await self._request(
            "GET",
            f"/products/{product_id}/reviews",
            params={"page": page, "limit": limit, "sort": sort},
        )
        if response.status_code != 200:
            raise ReviewsClientError(
                _server_message(response) or "Failed to fetch reviews", response.status_code
            )

        body = response.json()
        pagination = body.get("pagination") or {}
        return ReviewPage(
            reviews=list(body.get("data") or []),
            page=int(pagination.get("page", page)),
            limit=int(pagination.get("limit", limit)),
            total=int(pagination.get("total", 0)),
            pages=int(pagination.get("pages", 1)),
            distribution=dict(body.get("distribution") or {}),
        )

    async def create(
        self,
        product_id: Any,
        rating: int,
        comment: str,
        title: Optional[str] = None,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST /api/products/{productId}/reviews

        On success the cached summary is dropped and a ReviewsChanged event
        is published on the client's bus.
        """
        payload: Dict[str, Any] = {"rating": rating, "comment": comment}
        if title:
            payload["title"] = title
        if user_name:
            payload["userName"] = user_name
        if user_email:
            payload["userEmail"] = user_email

        response = await self._request("POST", f"/products/{product_id}/reviews", json=payload)
        if response.status_code not in (200, 201):
            message = _server_message(response) or _SUBMIT_ERROR_MESSAGES.get(
                response.status_code, "Server error while submitting review."
            )
            raise ReviewsClientError(message, response.status_code)

        self.invalidate(product_id)
        if self.bus is not None:
            self.bus.publish(ReviewsChanged(product_id=uuid.UUID(str(product_id)), changed_at_ms=now_ms()))

        return response.json().get("data") or {}

    async def mark_helpful(self, review_id: Any) -> None:
        """POST /api/reviews/{reviewId}/helpful"""
        response = await self._request("POST", f"/reviews/{review_id}/helpful")
        if response.status_code != 200:
            raise ReviewsClientError(
                _server_message(response) or "Failed to record vote", response.status_code
            )

    async def _fetch_summary(self, key: str, ttl: float) -> ClientSummary:
        generation = self.cache.generation(key)
        response = await self._request("GET", "/reviews/summary", params={"productId": key})
        if response.status_code != 200:
            raise ReviewsClientError(
                _server_message(response) or "Failed to load rating", response.status_code
            )
        summary = ClientSummary.from_payload(response.json().get("data"))
        if self.cache.set_if_unchanged(key, summary, generation, ttl):
            self._fetched_at_ms[key] = now_ms()
        return summary

    async def summary(
        self,
        product_id: Any,
        force_refresh: bool = False,
        ttl: Optional[float] = None,
    ) -> ClientSummary:
        """
        GET /api/reviews/summary

        Served from the client cache when fresh; concurrent callers for the
        same product share one request. force_refresh bypasses both.
        """
        key = self._key(product_id)
        ttl = ttl or self.ttl_seconds

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
            pending = self._inflight.get(key)
            if pending is not None:
                return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._fetch_summary(key, ttl))
        self._inflight[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def bulk_summary(
        self,
        product_ids: Iterable[Any],
        force_refresh: bool = False,
        ttl: Optional[float] = None,
    ) -> Dict[str, ClientSummary]:
        """
        POST /api/reviews/bulk-summary for the ids missing from the cache.

        The result has an entry for every requested id; ids the server did
        not return are filled (and cached) as zero summaries. Misses are sent
        in batches no larger than the server cap.
        """
        ttl = ttl or self.ttl_seconds
        keys = list(dict.fromkeys(self._key(pid) for pid in product_ids))
        result: Dict[str, ClientSummary] = {}
        missing: List[str] = []

        for key in keys:
            cached = None if force_refresh else self.cache.get(key)
            if cached is not None:
                result[key] = cached
            else:
                missing.append(key)

        # The server drops ids past its cap, so never send more than that at once
        batches = [missing[i:i + self.bulk_max_ids] for i in range(0, len(missing), self.bulk_max_ids)]
        for batch in batches:
            generations = {key: self.cache.generation(key) for key in batch}
            response = await self._request("POST", "/reviews/bulk-summary", json={"productIds": batch})
            if response.status_code != 200:
                raise ReviewsClientError(
                    _server_message(response) or "Failed to load ratings", response.status_code
                )
            data = response.json().get("data") or {}
            fetched_at = now_ms()
            for key in batch:
                summary = ClientSummary.from_payload(data.get(key))
                if self.cache.set_if_unchanged(key, summary, generations[key], ttl):
                    self._fetched_at_ms[key] = fetched_at
                result[key] = summary

        logger.debug(
            "Client bulk summary",
            extra={"requested": len(keys), "fetched": len(missing), "batches": len(batches)},
        )
        return {key: result.get(key, ZERO_SUMMARY) for key in keys}

    async def last_change(self, product_id: Any) -> Optional[int]:
        """GET /api/reviews/changes: last change time in epoch ms, or None."""
        response = await self._request("GET", "/reviews/changes", params={"productId": self._key(product_id)})
        if response.status_code != 200:
            raise ReviewsClientError(
                _server_message(response) or "Failed to check for changes", response.status_code
            )
        return response.json().get("changedAt")

    async def refresh_if_changed(self, product_id: Any) -> bool:
        """
        Drop the cached summary if the server's change marker is newer than
        the moment it was fetched. Returns whether anything was dropped.
        """
        key = self._key(product_id)
        fetched_at = self._fetched_at_ms.get(key)
        if fetched_at is None:
            return False

        changed_at = await self.last_change(key)
        if changed_at is not None and changed_at >= fetched_at:
            self.cache.delete(key)
            self._fetched_at_ms.pop(key, None)
            return True
        return False
