"""
Request id propagation and access logging.
"""
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.logging import logger

REQUEST_ID_HEADER = "X-Request-Id"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an id and log it once it completes.

    An incoming X-Request-Id is kept so an id assigned by a proxy or by the
    storefront follows the request; otherwise a UUID is generated. The id
    ends up in every log line, the response header and error bodies.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request_id_var.set(request_id)
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Request aborted",
                extra={"method": request.method, "path": request.url.path},
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query": request.url.query or None,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response


def get_request_id() -> str:
    """Id of the current request, or a fresh one outside a request."""
    return request_id_var.get() or str(uuid.uuid4())
