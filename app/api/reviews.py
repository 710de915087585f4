"""
Public review endpoints: listing, submission and helpful votes.
"""
import math
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_aggregator
from app.core.config import settings
from app.core.exceptions import AppException, NotFoundException, StoreUnavailableException
from app.core.logging import logger
from app.models import Product, Review, ReviewStatus
from app.models.review import RATING_MIN, RATING_MAX
from app.schemas.review import (
    HelpfulResponse,
    Pagination,
    ReviewCreateRequest,
    ReviewCreateResponse,
    ReviewListResponse,
    ReviewOut,
    ReviewSort,
)
from app.schemas.summary import SummaryOut
from app.services.aggregator import RatingAggregator
from app.services.references import parse_reference


router = APIRouter(prefix="/api", tags=["reviews"])


_SORT_ORDER = {
    ReviewSort.TOP: (Review.rating.desc(), Review.created_at.desc(), Review.id),
    ReviewSort.NEW: (Review.created_at.desc(), Review.id),
    ReviewSort.OLD: (Review.created_at.asc(), Review.id),
}


@router.get("/products/{product_id}/reviews", response_model=ReviewListResponse)
async def list_reviews(
    product_id: str,
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.REVIEW_PAGE_SIZE_DEFAULT, ge=1, le=settings.REVIEW_PAGE_SIZE_MAX),
    sort: ReviewSort = Query(ReviewSort.NEW),
    db: AsyncSession = Depends(get_db),
):
    """
    List approved reviews for a product.

    Raises:
        422: Malformed product id or paging parameters
        503: Database unavailable
    """
    pid = parse_reference(product_id, "productId")
    approved = (Review.product_id == pid, Review.status == ReviewStatus.APPROVED)

    try:
        items = (
            await db.execute(
                select(Review)
                .where(*approved)
                .order_by(*_SORT_ORDER[sort])
                .offset((page - 1) * limit)
                .limit(limit)
            )
        ).scalars().all()
        total = (await db.execute(select(func.count(Review.id)).where(*approved))).scalar_one()
        by_rating = (
            await db.execute(
                select(Review.rating, func.count(Review.id)).where(*approved).group_by(Review.rating)
            )
        ).all()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to list reviews",
            extra={"product_id": str(pid), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise StoreUnavailableException("Failed to fetch reviews")

    distribution = {str(star): 0 for star in range(RATING_MIN, RATING_MAX + 1)}
    for rating, count in by_rating:
        distribution[str(rating)] = count

    response.headers["Cache-Control"] = settings.cache_control_header

    return ReviewListResponse(
        data=[ReviewOut.model_validate(item) for item in items],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
        distribution=distribution,
    )


@router.post(
    "/products/{product_id}/reviews",
    response_model=ReviewCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    product_id: str,
    request: ReviewCreateRequest,
    db: AsyncSession = Depends(get_db),
    aggregator: RatingAggregator = Depends(get_aggregator),
):
    """
    Submit a review.

    The review is created pending, or approved when AUTO_PUBLISH_REVIEWS is
    on; an approved review triggers a rating recompute for its product. If
    that recompute fails the review still stands and ratingSummary is null.

    Raises:
        404: Product not found
        422: Invalid input
        503: Database unavailable
    """
    pid = parse_reference(product_id, "productId")
    review_status = ReviewStatus.APPROVED if settings.AUTO_PUBLISH_REVIEWS else ReviewStatus.PENDING

    logger.info(
        "Processing review submission",
        extra={"product_id": str(pid), "rating": request.rating, "status": review_status.value},
    )

    try:
        product = await db.get(Product, pid)
        if product is None:
            raise NotFoundException("Product", pid)

        review = Review(
            product_id=pid,
            rating=request.rating,
            title=request.title,
            comment=request.comment,
            user_name=request.user_name,
            user_email=str(request.user_email) if request.user_email else None,
            status=review_status,
            verified=False,
        )
        db.add(review)
        await db.commit()
        await db.refresh(review)
    except NotFoundException:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Failed to create review",
            extra={"product_id": str(pid), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise StoreUnavailableException("Failed to create review")

    rating_summary = None
    if review_status == ReviewStatus.APPROVED:
        try:
            rating_summary = SummaryOut.from_summary(await aggregator.recompute(db, pid))
        except AppException as e:
            # The review is the source of truth; the aggregate catches up on the next trigger
            logger.error(
                "Rating recompute after review submission failed",
                extra={"product_id": str(pid), "review_id": str(review.id), "error_code": e.error_code.value},
            )

    logger.info(
        "Review submitted",
        extra={"product_id": str(pid), "review_id": str(review.id), "status": review_status.value},
    )

    return ReviewCreateResponse(
        message="Review published" if review_status == ReviewStatus.APPROVED else "Review submitted for approval",
        data=ReviewOut.model_validate(review),
        rating_summary=rating_summary,
    )


@router.post("/reviews/{review_id}/helpful", response_model=HelpfulResponse)
async def mark_helpful(review_id: str, db: AsyncSession = Depends(get_db)):
    """
    Increment a review's helpful counter in a single UPDATE.

    Raises:
        404: Review not found
        422: Malformed review id
        503: Database unavailable
    """
    rid = parse_reference(review_id, "reviewId")

    try:
        result = await db.execute(
            update(Review).where(Review.id == rid).values(helpful=Review.helpful + 1)
        )
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Failed to record helpful vote",
            extra={"review_id": str(rid), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise StoreUnavailableException("Failed to record vote")

    if result.rowcount == 0:
        raise NotFoundException("Review", rid)

    return HelpfulResponse()
