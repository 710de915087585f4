"""
Rating summary endpoints (single, bulk) and change marker lookup.
"""
from fastapi import APIRouter, Depends, Query, Response
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_summary_service, get_marker_store
from app.core.config import settings
from app.core.exceptions import StoreUnavailableException
from app.core.logging import logger
from app.schemas.summary import (
    BulkSummaryRequest,
    BulkSummaryResponse,
    ChangeMarkerResponse,
    SummaryOut,
    SummaryResponse,
)
from app.services.invalidation import ChangeMarkerStore
from app.services.references import parse_reference
from app.services.summaries import SummaryService


router = APIRouter(prefix="/api/reviews", tags=["summaries"])


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(
    response: Response,
    product_id: str = Query(..., alias="productId"),
    db: AsyncSession = Depends(get_db),
    summaries: SummaryService = Depends(get_summary_service),
):
    """
    Rating summary for one product, served from the summary cache when fresh.

    Raises:
        422: Missing or malformed productId
        503: Database unavailable
    """
    summary, cached = await summaries.summary_for(db, product_id)

    response.headers["Cache-Control"] = settings.cache_control_header
    return SummaryResponse(cached=cached, data=SummaryOut.from_summary(summary))


@router.post("/bulk-summary", response_model=BulkSummaryResponse)
async def get_bulk_summary(
    request: BulkSummaryRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    summaries: SummaryService = Depends(get_summary_service),
):
    """
    Rating summaries for many products in one call.

    Only the first BULK_SUMMARY_MAX_IDS ids are considered and malformed ids
    are skipped; every remaining id gets an entry, zeros included.
    """
    result = await summaries.bulk_summary_for(db, request.product_ids)

    response.headers["Cache-Control"] = settings.cache_control_header
    return BulkSummaryResponse(
        data={str(pid): SummaryOut.from_summary(summary) for pid, summary in result.items()}
    )


@router.get("/changes", response_model=ChangeMarkerResponse)
async def get_change_marker(
    product_id: str = Query(..., alias="productId"),
    markers: ChangeMarkerStore = Depends(get_marker_store),
):
    """
    Last time the product's reviews changed (epoch ms), or null.

    Readers holding a cached summary compare this against the time they
    fetched it to decide whether to re-fetch.
    """
    pid = parse_reference(product_id, "productId")

    try:
        changed_at = await markers.last_changed(pid)
    except (RedisError, OSError) as e:
        logger.error(
            "Failed to read review change marker",
            extra={"product_id": str(pid), "error_type": type(e).__name__},
        )
        raise StoreUnavailableException("Failed to read change marker")

    return ChangeMarkerResponse(product_id=str(pid), changed_at=changed_at)
