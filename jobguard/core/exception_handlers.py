"""Exception handlers giving every failure the same JSON envelope.

    {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

Status codes by error type:
- ValidationAppError → 400
- AuthenticationAppError → 403
- RateLimitAppError → 429 (plus Retry-After / X-RateLimit-* headers)
- StorageQuotaExceededError → 507
- StorageAppError → 503
- request body/query validation → 422 (``request_validation_failed``)
- HTTPException (e.g. cache miss) → its own status
- anything else → 500 with a generic message
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jobguard.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitAppError,
    StorageAppError,
    StorageQuotaExceededError,
)
from jobguard.core.logging import get_request_id

logger = logging.getLogger(__name__)

_STATUS_BY_TYPE: tuple[tuple[type[AppError], int], ...] = (
    (AuthenticationAppError, 403),
    (RateLimitAppError, 429),
    (StorageQuotaExceededError, 507),
    (StorageAppError, 503),
)

_HTTP_CODES = {404: "not_found", 405: "method_not_allowed"}


def _status_for(exc: AppError) -> int:
    for error_type, status_code in _STATUS_BY_TYPE:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _envelope(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message, "request_id": get_request_id()}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content={"error": jsonable_encoder(error)},
        headers=dict(headers) if headers else None,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )
    headers = exc.headers if isinstance(exc, RateLimitAppError) else None
    return _envelope(status_code, exc.code, exc.message, exc.details, headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Invalid bodies or query parameters; ``details.errors`` lists each problem."""

    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
    logger.info(
        "request_validation_failed",
        extra={"request_path": request.url.path, "error_count": len(errors)},
    )
    return _envelope(422, "request_validation_failed", "Request validation failed", {"errors": errors})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, f"http_{exc.status_code}")
    return _envelope(exc.status_code, code, str(exc.detail), headers=exc.headers)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Safety net: log the failure, answer with a message that reveals nothing."""

    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )
    return _envelope(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please try again later.",
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
