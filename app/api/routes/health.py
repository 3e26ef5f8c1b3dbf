from __future__ import annotations

from fastapi import APIRouter, Request

from app.core.rate_limit import get_rate_limiter

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint.

    The service stays up when the rate limit store is unreachable (limits fall
    back to per-process counters), so a failed store probe reports
    ``"degraded"`` rather than an error status.

    Returns:
        dict: ``status`` ("ok" or "degraded") and ``rate_limit_store``.
    """

    store = get_rate_limiter(request).store
    store_ok = store.ping()
    return {
        "status": "ok" if store_ok else "degraded",
        "rate_limit_store": {"backend": store.name, "reachable": store_ok},
    }
