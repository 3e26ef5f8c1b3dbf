"""HTTP middleware for request correlation and access logging.

Every request/response pair carries a request id (incoming ``X-Request-ID`` or
a new UUID), stored in contextvars so rate limit logs emitted from the
threadpool share it. One ``http.request`` log line is written per request,
including throttled ones, so 429s can be counted from logs.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import get_request_settings
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("app.access")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate the request id and log the request outcome.

    Adds ``X-Request-ID`` and ``X-Request-Duration-ms`` to the response.
    """

    header_name = get_request_settings(request).log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log = logger.warning if response.status_code == 429 else logger.info
        log(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
