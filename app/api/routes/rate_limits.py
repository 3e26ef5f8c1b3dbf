from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import verify_api_key
from app.core.rate_limit import get_rate_limiter
from app.schemas.rate_limit import PurgeRateLimitsResponse

router = APIRouter(tags=["Rate limits"])


@router.delete(
    "/rate-limits/{identifier}",
    response_model=PurgeRateLimitsResponse,
    dependencies=[Depends(verify_api_key)],
)
def purge_rate_limits(identifier: str, request: Request) -> PurgeRateLimitsResponse:
    """Drop every counter of a tenant, e.g. right after a tier upgrade.

    Counters are keyed by tier, so without a purge an upgraded tenant would
    still see the window it exhausted under the old tier until it expires.
    """
    removed = get_rate_limiter(request).purge(identifier)
    return PurgeRateLimitsResponse(identifier=identifier, removed=removed)
