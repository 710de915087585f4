"""
Error envelope shared by every failing endpoint.
"""
from typing import Any, Dict, Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict


class ErrorCode(str, Enum):
    """Error taxonomy exposed to clients."""

    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_FOUND = "NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL = "INTERNAL"


ERROR_CODE_TO_HTTP_STATUS = {
    ErrorCode.INVALID_ARGUMENT: 422,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.STORE_UNAVAILABLE: 503,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.INTERNAL: 500,
}


class ErrorDetail(BaseModel):
    code: ErrorCode
    message: str = Field(..., description="Safe to show; never contains driver output")
    details: Optional[Dict[str, Any]] = Field(
        None, description="validation_errors for 422, resource/id for 404"
    )

    model_config = ConfigDict(use_enum_values=True)


class ErrorResponse(BaseModel):
    """
    Body of every error response, e.g. a review over the comment limit:

    {
        "requestId": "5b0e...",
        "error": {
            "code": "INVALID_ARGUMENT",
            "message": "Request validation failed",
            "details": {
                "validation_errors": [
                    {"field": "body.comment", "message": "...", "type": "string_too_long"}
                ]
            }
        }
    }
    """

    request_id: str = Field(..., alias="requestId", description="Echoes the X-Request-Id header")
    error: ErrorDetail

    model_config = ConfigDict(populate_by_name=True)
