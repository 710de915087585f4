"""
Storefront Reviews API.

Run with: uvicorn app.main:app
"""
import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.middleware import RequestIdMiddleware, get_request_id
from app.core.logging import logger, log_error
from app.core.exceptions import AppException
from app.schemas.error import ERROR_CODE_TO_HTTP_STATUS, ErrorResponse, ErrorDetail, ErrorCode
from app.db.database import init_db, close_db
from app.services.components import build_components
from app.services.summary_cache import run_sweeper
from app.api import health, reviews, summaries, admin, products


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Wire the review services for this process.

    The summary cache, invalidation bus and marker store live on app.state
    for the life of the process. A background task sweeps expired cache
    entries; reads never depend on it.
    """
    logger.info("Starting Storefront Reviews API", extra={"version": settings.APP_VERSION})

    try:
        await init_db()
    except Exception as e:
        # Keep serving: /health/ready reports the database as unavailable
        log_error("Failed to initialize database", e)

    components = build_components(settings)
    app.state.components = components
    sweeper = asyncio.create_task(run_sweeper(components.cache, settings.SUMMARY_CACHE_SWEEP_SECONDS))

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await components.close()
    await close_db()
    logger.info("Storefront Reviews API stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Product reviews, cached rating summaries and moderation for the storefront",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "X-Admin-Key", "X-Request-Id"],
    expose_headers=["X-Request-Id"],
)


def _error_response(status_code: int, detail: ErrorDetail) -> JSONResponse:
    body = ErrorResponse(request_id=get_request_id(), error=detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    # loc looks like ("body", "rating") or ("query", "limit")
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"], "type": err["type"]}
        for err in exc.errors()
    ]


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Render an AppException with the status implied by its error code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        exc.message,
        extra={"error_code": exc.error_code.value, "details": exc.details, "path": request.url.path},
    )
    return _error_response(exc.status_code, exc.to_detail())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters become INVALID_ARGUMENT before any write."""
    errors = _validation_errors(exc)
    logger.info("Request validation failed", extra={"validation_errors": errors, "path": request.url.path})

    return _error_response(
        ERROR_CODE_TO_HTTP_STATUS[ErrorCode.INVALID_ARGUMENT],
        ErrorDetail(
            code=ErrorCode.INVALID_ARGUMENT,
            message="Request validation failed",
            details={"validation_errors": errors},
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything else is INTERNAL; the exception text is only returned in DEBUG."""
    logger.error(
        f"Unhandled {type(exc).__name__}",
        extra={"path": request.url.path},
        exc_info=True,
    )

    return _error_response(
        ERROR_CODE_TO_HTTP_STATUS[ErrorCode.INTERNAL],
        ErrorDetail(
            code=ErrorCode.INTERNAL,
            message="Internal server error",
            details={"error": str(exc)} if settings.DEBUG else None,
        ),
    )


for module in (health, reviews, summaries, admin, products):
    app.include_router(module.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, workers=settings.WORKERS)
