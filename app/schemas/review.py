"""
Pydantic schemas for Review-related requests and responses.
"""
import uuid
from enum import Enum
from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict

from app.models.review import (
    ReviewStatus,
    RATING_MIN,
    RATING_MAX,
    TITLE_MAX_LENGTH,
    COMMENT_MIN_LENGTH,
    COMMENT_MAX_LENGTH,
)
from app.schemas.summary import SummaryOut


class ReviewSort(str, Enum):
    """Listing orders: top = rating desc then newest, new = newest, old = oldest."""

    TOP = "top"
    NEW = "new"
    OLD = "old"


class ReviewCreateRequest(BaseModel):
    """
    Request body for POST /api/products/{productId}/reviews.
    Whitespace is trimmed before length checks.
    """

    rating: int = Field(..., ge=RATING_MIN, le=RATING_MAX, description="Rating (1-5)")
    comment: str = Field(
        ...,
        min_length=COMMENT_MIN_LENGTH,
        max_length=COMMENT_MAX_LENGTH,
        description="Review body",
    )
    title: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH, description="Optional headline")
    user_name: Optional[str] = Field(None, alias="userName", max_length=120, description="Display name")
    user_email: Optional[EmailStr] = Field(None, alias="userEmail", description="Contact email")

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    @field_validator("title", "user_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty optional strings as absent."""
        return v or None


class ReviewOut(BaseModel):
    """Public representation of a review."""

    id: uuid.UUID = Field(..., alias="_id")
    product_id: uuid.UUID = Field(..., alias="productId")
    rating: int
    title: Optional[str] = None
    comment: str
    user_id: Optional[str] = Field(None, alias="userId")
    user_name: Optional[str] = Field(None, alias="userName")
    status: ReviewStatus
    helpful: int
    verified: bool
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ReviewListResponse(BaseModel):
    """Response for GET /api/products/{productId}/reviews."""

    success: bool = True
    data: List[ReviewOut]
    pagination: Pagination
    distribution: Dict[str, int] = Field(
        ..., description="Approved review count per star rating, keys '1'..'5'"
    )


class ReviewCreateResponse(BaseModel):
    """Response for review creation."""

    success: bool = True
    message: str
    data: ReviewOut
    rating_summary: Optional[SummaryOut] = Field(
        None,
        alias="ratingSummary",
        description="Fresh aggregate when the review was published and the recompute succeeded",
    )

    model_config = ConfigDict(populate_by_name=True)


class ReviewStatusUpdateRequest(BaseModel):
    """Request body for PATCH /api/reviews/{reviewId}/status."""

    status: ReviewStatus


class ReviewStatusResponse(BaseModel):
    success: bool = True
    data: ReviewOut
    rating_summary: Optional[SummaryOut] = Field(None, alias="ratingSummary")

    model_config = ConfigDict(populate_by_name=True)


class HelpfulResponse(BaseModel):
    success: bool = True
