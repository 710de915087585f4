"""
Pydantic schemas for rating summaries.

Summaries are stored once and spelled twice on the wire (avg/total and
averageRating/reviewCount) for the different storefront consumers.
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict

if TYPE_CHECKING:
    from app.services.aggregator import RatingSummary


class SummaryOut(BaseModel):
    """Dual-spelled rating summary."""

    avg: float = Field(..., description="Mean approved rating, one decimal")
    total: int = Field(..., description="Approved review count")
    average_rating: float = Field(..., alias="averageRating")
    review_count: int = Field(..., alias="reviewCount")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_summary(cls, summary: "RatingSummary") -> "SummaryOut":
        return cls(
            avg=summary.mean,
            total=summary.count,
            average_rating=summary.mean,
            review_count=summary.count,
        )


class SummaryResponse(BaseModel):
    """Response for GET /api/reviews/summary."""

    success: bool = True
    cached: bool = Field(..., description="Whether the value was served from the summary cache")
    data: SummaryOut


class BulkSummaryRequest(BaseModel):
    """
    Request body for POST /api/reviews/bulk-summary.
    Entries past the configured cap and malformed ids are ignored.
    """

    product_ids: List[Any] = Field(default_factory=list, alias="productIds")

    model_config = ConfigDict(populate_by_name=True)


class BulkSummaryResponse(BaseModel):
    success: bool = True
    data: Dict[str, SummaryOut]


class ChangeMarkerResponse(BaseModel):
    """Response for GET /api/reviews/changes."""

    success: bool = True
    product_id: str = Field(..., alias="productId")
    changed_at: Optional[int] = Field(
        None, alias="changedAt", description="Last change time in epoch milliseconds"
    )

    model_config = ConfigDict(populate_by_name=True)
