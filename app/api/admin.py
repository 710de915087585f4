"""
Moderation endpoints (require X-Admin-Key).
"""
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_aggregator, verify_admin_key
from app.core.exceptions import AppException, NotFoundException, StoreUnavailableException
from app.core.logging import logger
from app.models import Review, ReviewStatus
from app.schemas.review import ReviewOut, ReviewStatusResponse, ReviewStatusUpdateRequest
from app.schemas.summary import SummaryOut
from app.services.aggregator import RatingAggregator
from app.services.references import parse_reference


router = APIRouter(prefix="/api/reviews", tags=["admin"])


async def moderate_review(
    db: AsyncSession,
    aggregator: RatingAggregator,
    review_id: str,
    target: ReviewStatus,
) -> ReviewStatusResponse:
    """
    Move a review to target status and recompute its product's rating.

    The recompute runs for every transition: a review leaving approved must
    shrink the aggregate just as one entering it grows it.
    """
    rid = parse_reference(review_id, "reviewId")

    try:
        review = await db.get(Review, rid)
        if review is None:
            raise NotFoundException("Review", rid)

        previous = review.status
        review.status = target
        await db.commit()
        await db.refresh(review)
    except NotFoundException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Failed to update review status",
            extra={"review_id": str(rid), "status": target.value, "error_type": type(e).__name__},
            exc_info=True,
        )
        raise StoreUnavailableException("Failed to update review status")

    logger.info(
        "Review status changed",
        extra={
            "review_id": str(rid),
            "product_id": str(review.product_id),
            "from_status": previous.value,
            "to_status": target.value,
        },
    )

    rating_summary = None
    try:
        rating_summary = SummaryOut.from_summary(await aggregator.recompute(db, review.product_id))
    except AppException as e:
        logger.error(
            "Rating recompute after moderation failed",
            extra={
                "review_id": str(rid),
                "product_id": str(review.product_id),
                "error_code": e.error_code.value,
            },
        )

    return ReviewStatusResponse(data=ReviewOut.model_validate(review), rating_summary=rating_summary)


@router.patch("/{review_id}/status", response_model=ReviewStatusResponse)
async def set_review_status(
    review_id: str,
    request: ReviewStatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    aggregator: RatingAggregator = Depends(get_aggregator),
    admin_key: str = Depends(verify_admin_key),
):
    """
    Set a review's moderation status.

    Raises:
        401: Invalid admin API key
        404: Review not found
        422: Malformed review id or unknown status
        503: Database unavailable
    """
    return await moderate_review(db, aggregator, review_id, request.status)


@router.patch("/{review_id}/approve", response_model=ReviewStatusResponse)
async def approve_review(
    review_id: str,
    db: AsyncSession = Depends(get_db),
    aggregator: RatingAggregator = Depends(get_aggregator),
    admin_key: str = Depends(verify_admin_key),
):
    """Shorthand for setting status to approved."""
    return await moderate_review(db, aggregator, review_id, ReviewStatus.APPROVED)
