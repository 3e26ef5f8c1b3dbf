"""Authentication collaborators.

Two concerns live here:

- Admin API key authentication for operational endpoints (rate limit purge).
  Keys are validated against a comma-separated list from environment
  variables.
- The session directory used by the rate limiter to map a bearer token to a
  user id and a user id to a subscription tier. The service ships a static,
  configuration-driven directory; deployments plug in their auth provider by
  implementing ``SessionDirectory``.

Design principles:
- Single Responsibility: only handles credential/session lookups
- Dependency Injection: used via FastAPI Depends() / constructor injection
- Configuration-driven: keys managed via env vars, not hardcoded
"""

from __future__ import annotations

import logging
from typing import Annotated, Protocol

from fastapi import Header, HTTPException, status

from app.core.config import AppSettings, settings
from app.core.errors import AuthenticationAppError, ValidationAppError
from app.core.logging import fingerprint

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Args:
        keys_string: Comma-separated string of API keys, or None.

    Returns:
        Set of trimmed, non-empty API keys.

    Examples:
        >>> parse_api_keys("key1,key2,key3")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    keys = {key.strip() for key in keys_string.split(",") if key.strip()}
    return keys


def parse_pairs(pairs_string: str | None) -> dict[str, str]:
    """Parse comma-separated ``left:right`` pairs into a dict.

    Only the first colon splits a pair, so values may contain colons.

    Examples:
        >>> parse_pairs("tok-1:user-1, tok-2:user-2")
        {'tok-1': 'user-1', 'tok-2': 'user-2'}
        >>> parse_pairs(None)
        {}

    Raises:
        ValidationAppError: If a non-empty item has no colon or an empty side.
    """
    if not pairs_string:
        return {}

    result: dict[str, str] = {}
    for item in pairs_string.split(","):
        item = item.strip()
        if not item:
            continue
        left, sep, right = item.partition(":")
        left, right = left.strip(), right.strip()
        if not sep or not left or not right:
            raise ValidationAppError(
                code="invalid_pair",
                message=f"Expected 'key:value' pair, got '{item}'",
            )
        result[left] = right
    return result


def validate_api_key(provided_key: str) -> None:
    """Validate that provided API key matches configured keys.

    Pure validation logic without FastAPI dependencies for easy testing.

    Args:
        provided_key: API key to validate.

    Raises:
        AuthenticationAppError: If key is invalid or authentication is required but no keys configured.
    """
    if not settings.app.api_key_required:
        # Authentication disabled - allow all requests
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "api_key_validation_failed",
            extra={
                "reason": "api_keys_not_configured",
                "auth_required": settings.app.api_key_required,
            },
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if provided_key not in valid_keys:
        logger.warning(
            "api_key_validation_failed",
            extra={
                "reason": "invalid_api_key",
                "api_key_hash": fingerprint(provided_key),
                "auth_required": settings.app.api_key_required,
            },
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for admin API key authentication.

    Usage:
        @router.delete("/rate-limits/{identifier}", dependencies=[Depends(verify_api_key)])

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI).

    Raises:
        HTTPException: 403 Forbidden if authentication fails.
    """
    if not settings.app.api_key_required:
        logger.debug(
            "auth.skipped",
            extra={"reason": "auth_required_false"},
        )
        return

    if not x_api_key:
        logger.warning(
            "auth.missing_key",
            extra={
                "auth_required": True,
                "api_key_present": False,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Missing API key. Provide X-API-Key header.",
        )

    try:
        validate_api_key(x_api_key)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=exc.message,
        ) from exc


class SessionDirectory(Protocol):
    """Lookups the rate limiter needs from the auth/billing collaborators."""

    def get_user_id(self, token: str) -> str | None:
        """Return the user id of an active session, or None."""
        ...

    def get_subscription_tier(self, user_id: str) -> str | None:
        """Return the raw subscription tier of a user, or None."""
        ...


class StaticSessionDirectory:
    """Session directory backed by static token and tier maps."""

    def __init__(
        self,
        tokens: dict[str, str] | None = None,
        tiers: dict[str, str] | None = None,
    ) -> None:
        self._tokens = dict(tokens or {})
        self._tiers = dict(tiers or {})

    @classmethod
    def from_settings(cls, app_settings: AppSettings | None = None) -> "StaticSessionDirectory":
        cfg = app_settings or settings.app
        return cls(
            tokens=parse_pairs(cfg.session_tokens),
            tiers=parse_pairs(cfg.user_tiers),
        )

    def get_user_id(self, token: str) -> str | None:
        return self._tokens.get(token)

    def get_subscription_tier(self, user_id: str) -> str | None:
        return self._tiers.get(user_id)

    def set_subscription_tier(self, user_id: str, tier: str) -> None:
        """Record a tier change (stands in for the billing webhook)."""
        self._tiers[user_id] = tier
