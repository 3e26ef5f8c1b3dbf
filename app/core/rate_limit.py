"""Rate limiting dependency for FastAPI routes.

This module wires the rate decision engine into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a ``RateLimitGuard`` instance only.
- Stateless guard: every call composes its resolvers and the engine stored on
  ``app.state`` at startup.
- Never the reason a request fails: any unexpected error fails open with an
  error log.

Usage:
    submission_guard = RateLimitGuard(LimitClass.SUBMISSION, client_ip, fixed_tier(Tier.FREE))

    @router.post("/forms/{form_id}/submit", dependencies=[Depends(submission_guard)])
    async def submit(...): ...
"""

from __future__ import annotations

import logging
from typing import Callable

from fastapi import Request, Response

from app.core.config import get_request_settings
from app.core.errors import RateLimitExceededError
from app.services.identity_service import UserTierResolver, resolve_ip
from app.services.quota import LimitClass, Tier
from app.services.rate_limit_service import Decision, RateDecisionEngine

logger = logging.getLogger(__name__)

IdentityResolver = Callable[[Request], str]
TierResolver = Callable[[Request], Tier]


def build_rate_limit_headers(decision: Decision) -> dict[str, str]:
    """Build the standard rate limit response headers for a decision."""

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at_ms),
    }
    if decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


def get_rate_limiter(request: Request) -> RateDecisionEngine:
    """Return the engine created at startup by the app factory."""
    return request.app.state.rate_limiter


def get_user_tier_resolver(request: Request) -> UserTierResolver:
    return request.app.state.user_tier_resolver


def client_ip(request: Request) -> str:
    """Identity resolver for IP-keyed traffic."""
    return resolve_ip(
        request,
        trust_peer_address=get_request_settings(request).app.rate_limit_trust_peer_address,
    )


def current_user_id(request: Request) -> str:
    """Identity resolver for user-keyed traffic."""
    return get_user_tier_resolver(request).resolve_user_id(request)


def current_tier(request: Request) -> Tier:
    """Tier resolver backed by the session directory."""
    return get_user_tier_resolver(request).resolve_tier(request)


def fixed_tier(tier: Tier) -> TierResolver:
    """Tier resolver that always returns ``tier``."""

    def _resolve(_request: Request) -> Tier:
        return tier

    return _resolve


class RateLimitGuard:
    """FastAPI dependency enforcing one limit class.

    Allowed requests continue with informational ``X-RateLimit-*`` headers on
    the response. Denied requests raise ``RateLimitExceededError``, rendered as
    HTTP 429 by the exception handlers.

    Args:
        limit_class: Kind of traffic this guard throttles.
        identity_resolver: Maps a request to the counter identifier.
        tier_resolver: Maps a request to the subscription tier.
    """

    def __init__(
        self,
        limit_class: LimitClass,
        identity_resolver: IdentityResolver,
        tier_resolver: TierResolver = fixed_tier(Tier.FREE),
    ) -> None:
        self.limit_class = LimitClass(limit_class)
        self.identity_resolver = identity_resolver
        self.tier_resolver = tier_resolver

    def __call__(self, request: Request, response: Response) -> None:
        cfg = get_request_settings(request).app
        if not cfg.rate_limit_enabled:
            return

        try:
            identifier = self.identity_resolver(request)
            tier = Tier.parse(self.tier_resolver(request))
            decision = get_rate_limiter(request).check(self.limit_class, identifier, tier)
        except Exception as exc:
            logger.error(
                "rate_limit.fail_open",
                extra={
                    "limit_class": self.limit_class.value,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "request_path": request.url.path,
                },
            )
            return

        if decision.allowed:
            if cfg.rate_limit_include_headers:
                response.headers.update(build_rate_limit_headers(decision))
            return

        raise RateLimitExceededError(decision)
