"""Identity and tier resolution for rate limiting.

Resolvers never raise: an unresolvable IP becomes ``"unknown"`` and an
unresolvable user becomes ``("anonymous", free)``. Those sentinels are real
buckets that share one counter.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass

from fastapi import Request

from app.core.auth import SessionDirectory
from app.services.quota import Tier
from app.services.rate_limit_service import ANONYMOUS_USER, UNKNOWN_IP

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"


def normalize_ip(value: str | None) -> str | None:
    """Return the canonical text form of an IP address, or None.

    Accepts bare IPv4/IPv6, ``a.b.c.d:port`` and ``[v6]:port`` forms.

    Examples:
        >>> normalize_ip(" 1.2.3.4 ")
        '1.2.3.4'
        >>> normalize_ip("1.2.3.4:8080")
        '1.2.3.4'
        >>> normalize_ip("2001:DB8::1")
        '2001:db8::1'
        >>> normalize_ip("not-an-ip") is None
        True
    """
    if not value:
        return None

    candidate = value.strip()
    if candidate.startswith("[") and "]" in candidate:
        candidate = candidate[1 : candidate.index("]")]
    elif candidate.count(":") == 1:
        candidate = candidate.split(":", 1)[0]

    try:
        return ipaddress.ip_address(candidate).compressed
    except ValueError:
        return None


def resolve_ip(request: Request, *, trust_peer_address: bool = False) -> str:
    """Resolve the client IP from trusted proxy headers.

    Order: first entry of ``X-Forwarded-For``, then ``X-Real-IP``, then the
    socket peer when ``trust_peer_address`` is set, else ``"unknown"``.
    """
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if forwarded:
        ip = normalize_ip(forwarded.split(",")[0])
        if ip:
            return ip

    ip = normalize_ip(request.headers.get(REAL_IP_HEADER))
    if ip:
        return ip

    if trust_peer_address and request.client is not None:
        ip = normalize_ip(request.client.host)
        if ip:
            return ip

    logger.debug("identity.ip_unresolved", extra={"sentinel": UNKNOWN_IP})
    return UNKNOWN_IP


@dataclass(frozen=True)
class ResolvedIdentity:
    """Authenticated user and tier (sentinels when unauthenticated)."""

    user_id: str
    tier: Tier


ANONYMOUS = ResolvedIdentity(user_id=ANONYMOUS_USER, tier=Tier.FREE)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class UserTierResolver:
    """Resolve the authenticated user and subscription tier of a request.

    The result is memoized on ``request.state`` so the identity and tier
    resolvers of one guard share a single session lookup.
    """

    _STATE_ATTR = "rate_limit_identity"

    def __init__(self, directory: SessionDirectory) -> None:
        self._directory = directory

    def resolve(self, request: Request) -> ResolvedIdentity:
        cached = getattr(request.state, self._STATE_ATTR, None)
        if isinstance(cached, ResolvedIdentity):
            return cached

        identity = self._lookup(request)
        setattr(request.state, self._STATE_ATTR, identity)
        return identity

    def _lookup(self, request: Request) -> ResolvedIdentity:
        token = _bearer_token(request)
        if token is None:
            return ANONYMOUS

        try:
            user_id = self._directory.get_user_id(token)
            if not user_id:
                logger.debug("identity.session_not_found")
                return ANONYMOUS
            raw_tier = self._directory.get_subscription_tier(user_id)
        except Exception as exc:
            logger.warning(
                "identity.lookup_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return ANONYMOUS

        tier = Tier.parse(raw_tier)
        declared_free = isinstance(raw_tier, str) and raw_tier.strip().lower() == Tier.FREE.value
        if raw_tier is not None and tier is Tier.FREE and not declared_free:
            logger.warning("identity.invalid_tier", extra={"fallback_tier": tier.value})
        return ResolvedIdentity(user_id=str(user_id), tier=tier)

    def resolve_user_id(self, request: Request) -> str:
        return self.resolve(request).user_id

    def resolve_tier(self, request: Request) -> Tier:
        return self.resolve(request).tier
