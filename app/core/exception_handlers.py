"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- RateLimitExceededError → 429 with the rate limit body and headers
- Other AppError subclasses → appropriate HTTP status (400, 403, 500)
- Unexpected Exception → generic 500 (safety net)
- Error responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import get_request_settings
from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConfigurationAppError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from app.core.logging import get_request_id
from app.core.rate_limit import build_rate_limit_headers
from app.schemas.rate_limit import RateLimitExceededResponse, RateLimitInfo

logger = logging.getLogger(__name__)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceededError
) -> JSONResponse:
    """Render a denied rate limit decision as HTTP 429.

    Body:
        ``{success, error, message, rateLimitInfo: {limit, remaining,
        resetTime, retryAfter}}``

    Headers:
        ``X-RateLimit-Limit``, ``X-RateLimit-Remaining``, ``X-RateLimit-Reset``
        and ``Retry-After`` (unless headers are disabled in settings).
    """
    decision = exc.decision
    body = RateLimitExceededResponse(
        message=exc.message,
        rate_limit_info=RateLimitInfo(
            limit=decision.limit,
            remaining=0,
            reset_time=decision.reset_at_ms,
            retry_after=decision.retry_after_seconds,
        ),
    )

    headers = None
    if get_request_settings(request).app.rate_limit_include_headers:
        headers = build_rate_limit_headers(decision)

    return JSONResponse(
        status_code=429,
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - AuthenticationAppError → 403 Forbidden (authorization fault)
    - ConfigurationAppError / StoreUnavailableError → 500 (server fault)
    - anything else → 400 Bad Request (client fault)

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = 400
    if isinstance(exc, AuthenticationAppError):
        status_code = 403
    elif isinstance(exc, (ConfigurationAppError, StoreUnavailableError)):
        status_code = 500

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    No stack traces or internals are sent to the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Starlette picks the handler of the most specific class in the exception's
    MRO, so ``RateLimitExceededError`` wins over ``AppError``.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
