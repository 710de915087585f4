"""
Paginated review reader where only the most recent request may update state.

A page/sort change issued before the previous fetch resolves cancels that
fetch, and any response belonging to an older request is discarded even if
it arrives later.
"""
import asyncio
from typing import Any, Dict, List, Optional

from app.client.reviews_client import ReviewPage, ReviewsClient, ReviewsClientError


class ReviewPager:
    """Accumulates approved reviews for one product, page by page."""

    def __init__(self, client: ReviewsClient, product_id: Any, page_size: int = 10, sort: str = "new"):
        self.client = client
        self.product_id = product_id
        self.page_size = page_size
        self.sort = sort

        self.reviews: List[Dict[str, Any]] = []
        self.page = 1
        self.total: Optional[int] = None
        self.loading = False
        self.error: Optional[str] = None

        self._ticket = 0
        self._task: Optional["asyncio.Future[ReviewPage]"] = None

    @property
    def has_more(self) -> bool:
        return self.total is not None and len(self.reviews) < self.total

    async def _fetch(self, page: int, append: bool) -> bool:
        """Fetch page; returns False when the result was superseded or failed."""
        self._ticket += 1
        ticket = self._ticket

        if self._task is not None and not self._task.done():
            self._task.cancel()

        task = asyncio.ensure_future(
            self.client.list(self.product_id, page=page, limit=self.page_size, sort=self.sort)
        )
        self._task = task
        self.loading = True
        self.error = None

        try:
            result = await task
        except asyncio.CancelledError:
            if task.cancelled() and ticket != self._ticket:
                return False
            raise
        except ReviewsClientError as e:
            if ticket == self._ticket:
                self.error = e.message
            return False
        finally:
            if ticket == self._ticket:
                self.loading = False

        if ticket != self._ticket:
            return False

        self.reviews = self.reviews + result.reviews if append else list(result.reviews)
        self.page = page
        self.total = result.total
        return True

    async def refresh(self) -> bool:
        """Reload from the first page, replacing what is held."""
        return await self._fetch(1, append=False)

    async def load_more(self) -> bool:
        """Append the next page if there is one and nothing is loading."""
        if self.loading or not self.has_more:
            return False
        return await self._fetch(self.page + 1, append=True)

    async def set_sort(self, sort: str) -> bool:
        self.sort = sort
        self.reviews = []
        self.total = None
        return await self.refresh()

    def cancel(self) -> None:
        """Abandon any in-flight request."""
        self._ticket += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.loading = False
