"""
Application exceptions.

Each exception class fixes its ErrorCode; the HTTP status and the error
envelope are derived from that code, so handlers never choose statuses.
"""
from typing import Any, Dict, Optional

from app.schemas.error import ERROR_CODE_TO_HTTP_STATUS, ErrorCode, ErrorDetail


class AppException(Exception):
    """Base for errors that reach the client as an ErrorResponse."""

    error_code: ErrorCode = ErrorCode.INTERNAL
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_CODE_TO_HTTP_STATUS[self.error_code]

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(code=self.error_code, message=self.message, details=self.details or None)


class InvalidArgumentException(AppException):
    """Malformed or out-of-range input (422)."""

    error_code = ErrorCode.INVALID_ARGUMENT
    default_message = "Invalid argument"


class InvalidReferenceException(InvalidArgumentException):
    """An id that is not a well-formed UUID (422)."""

    def __init__(self, field: str, value: Any):
        super().__init__(
            f"Invalid {field}: {value!r}",
            details={"validation_errors": [{"field": field, "message": "not a valid id"}]},
        )
        self.field = field


class NotFoundException(AppException):
    """A product or review that does not exist (404)."""

    error_code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            details={"resource": resource.lower(), "id": str(identifier)},
        )


class StoreUnavailableException(AppException):
    """The database or the change marker store failed (503). Not retried."""

    error_code = ErrorCode.STORE_UNAVAILABLE
    default_message = "Data store unavailable"


class UnauthorizedException(AppException):
    """Missing or wrong admin key (401)."""

    error_code = ErrorCode.UNAUTHORIZED
    default_message = "Unauthorized"
