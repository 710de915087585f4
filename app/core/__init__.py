"""
Core utilities package.
Exports configuration, logging, middleware, and exceptions.
"""
from app.core.config import settings
from app.core.logging import logger, log_error
from app.core.middleware import RequestIdMiddleware, get_request_id
from app.core.exceptions import (
    AppException,
    InvalidArgumentException,
    InvalidReferenceException,
    NotFoundException,
    StoreUnavailableException,
    UnauthorizedException,
)

__all__ = [
    "settings",
    "logger",
    "log_error",
    "RequestIdMiddleware",
    "get_request_id",
    "AppException",
    "InvalidArgumentException",
    "InvalidReferenceException",
    "NotFoundException",
    "StoreUnavailableException",
    "UnauthorizedException",
]
