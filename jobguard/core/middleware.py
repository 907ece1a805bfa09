"""HTTP middleware for request correlation.

Every request/response pair carries a request id: the client's
``X-Request-ID`` (header name configurable) or a fresh UUID. The id lives in
a context variable for the duration of the request so every log line emitted
while handling it is tagged, and it is echoed back with the elapsed time.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from jobguard.core.config import settings
from jobguard.core.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

_MAX_REQUEST_ID_LENGTH = 128


def _incoming_request_id(request: Request, header_name: str) -> str:
    incoming = request.headers.get(header_name, "").strip()
    if incoming and len(incoming) <= _MAX_REQUEST_ID_LENGTH:
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id to the context, logs and response headers.

    Adds ``<request id header>`` and ``X-Request-Duration-ms`` to the response.
    """

    header_name = settings.log.request_id_header
    request_id = _incoming_request_id(request, header_name)
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "route": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
