"""
Pydantic schemas package.
Exports all request/response models.
"""
from app.schemas.summary import (
    SummaryOut,
    SummaryResponse,
    BulkSummaryRequest,
    BulkSummaryResponse,
    ChangeMarkerResponse,
)
from app.schemas.review import (
    ReviewSort,
    ReviewCreateRequest,
    ReviewCreateResponse,
    ReviewOut,
    ReviewListResponse,
    ReviewStatusUpdateRequest,
    ReviewStatusResponse,
    HelpfulResponse,
    Pagination,
)
from app.schemas.product import ProductOut, ProductResponse
from app.schemas.error import ErrorCode, ErrorDetail, ErrorResponse, ERROR_CODE_TO_HTTP_STATUS

__all__ = [
    # Summary
    "SummaryOut",
    "SummaryResponse",
    "BulkSummaryRequest",
    "BulkSummaryResponse",
    "ChangeMarkerResponse",
    # Review
    "ReviewSort",
    "ReviewCreateRequest",
    "ReviewCreateResponse",
    "ReviewOut",
    "ReviewListResponse",
    "ReviewStatusUpdateRequest",
    "ReviewStatusResponse",
    "HelpfulResponse",
    "Pagination",
    # Product
    "ProductOut",
    "ProductResponse",
    # Error
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "ERROR_CODE_TO_HTTP_STATUS",
]
