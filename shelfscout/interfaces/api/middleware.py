"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shelfscout.config.errors import ErrorCode, ShelfScoutError

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        # Store in request state for access in handlers
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        # Log request with latency
        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )

        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert ShelfScoutError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except ShelfScoutError as e:
            request_id = getattr(request.state, "request_id", "unknown")
            status = _error_code_to_status(e.code)
            if status >= 500:
                # Server-side failures keep their details in the log only
                logger.exception(
                    "ShelfScoutError: %s request_id=%s details=%s",
                    e.message,
                    request_id,
                    e.details,
                )
                error = {"code": e.code.value, "message": "Internal server error", "details": {}}
            else:
                logger.warning(
                    "ShelfScoutError: %s request_id=%s details=%s",
                    e.message,
                    request_id,
                    e.details,
                )
                error = e.to_dict()
            return JSONResponse(
                status_code=status,
                content={"error": error, "request_id": request_id},
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI request validation failures to a 400 with the taxonomy shape."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(
        "Validation failed: %s %s errors=%d request_id=%s",
        request.method,
        request.url.path,
        len(exc.errors()),
        request_id,
    )
    return JSONResponse(
        status_code=400,
        content={
            "error": {"code": ErrorCode.VALIDATION_ERROR.value, "message": "Bad Request"},
            "request_id": request_id,
        },
    )


def _error_code_to_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    mapping = {
        # 400 Bad Request
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.SEARCH_INVALID_QUERY: 400,
        # 404 Not Found
        ErrorCode.NOT_FOUND: 404,
        # 429 Rate Limited
        ErrorCode.LLM_RATE_LIMITED: 429,
    }
    return mapping.get(code, 500)
