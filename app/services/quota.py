"""Static quota table: (limit class, tier) -> (max requests, window).

The table is built once at startup and never mutated. It must be total over
``LimitClass x Tier``; a missing or invalid row is a configuration error and
fails the application start, never an individual request.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from app.core.errors import ConfigurationAppError

MIN_WINDOW_MS = 1000

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS


class LimitClass(str, Enum):
    """Kind of traffic being throttled."""

    SUBMISSION = "submission"
    API = "api"
    FORM_CREATION = "formCreation"


class Tier(str, Enum):
    """Subscription level selecting the quota row."""

    FREE = "free"
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: Any) -> "Tier":
        """Validate an untrusted tier value, defaulting to ``free``.

        Examples:
            >>> Tier.parse("pro")
            <Tier.PRO: 'pro'>
            >>> Tier.parse("platinum")
            <Tier.FREE: 'free'>
            >>> Tier.parse(None)
            <Tier.FREE: 'free'>
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.FREE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.FREE


@dataclass(frozen=True)
class QuotaRow:
    """Maximum requests allowed per fixed window.

    Attributes:
        limit: Requests allowed per window (>= 1).
        window_ms: Window length in milliseconds (>= 1000).
    """

    limit: int
    window_ms: int


DEFAULT_QUOTAS: Mapping[LimitClass, Mapping[Tier, QuotaRow]] = {
    # Public form submissions, keyed by client IP
    LimitClass.SUBMISSION: {
        Tier.FREE: QuotaRow(limit=10, window_ms=_MINUTE_MS),
        Tier.STARTER: QuotaRow(limit=25, window_ms=_MINUTE_MS),
        Tier.PRO: QuotaRow(limit=50, window_ms=_MINUTE_MS),
        Tier.ENTERPRISE: QuotaRow(limit=200, window_ms=_MINUTE_MS),
    },
    # Authenticated API calls, keyed by user
    LimitClass.API: {
        Tier.FREE: QuotaRow(limit=100, window_ms=_HOUR_MS),
        Tier.STARTER: QuotaRow(limit=500, window_ms=_HOUR_MS),
        Tier.PRO: QuotaRow(limit=1000, window_ms=_HOUR_MS),
        Tier.ENTERPRISE: QuotaRow(limit=10000, window_ms=_HOUR_MS),
    },
    # Form creation, keyed by user
    LimitClass.FORM_CREATION: {
        Tier.FREE: QuotaRow(limit=5, window_ms=_DAY_MS),
        Tier.STARTER: QuotaRow(limit=25, window_ms=_DAY_MS),
        Tier.PRO: QuotaRow(limit=50, window_ms=_DAY_MS),
        Tier.ENTERPRISE: QuotaRow(limit=500, window_ms=_DAY_MS),
    },
}


class QuotaTable:
    """Immutable, total lookup of quota rows.

    Args:
        rows: Nested mapping ``{LimitClass: {Tier: QuotaRow}}``. Defaults to
            ``DEFAULT_QUOTAS``.

    Raises:
        ConfigurationAppError: If a (class, tier) combination is missing or a
            row violates ``limit >= 1`` / ``window_ms >= 1000``.
    """

    def __init__(
        self, rows: Mapping[LimitClass, Mapping[Tier, QuotaRow]] | None = None
    ) -> None:
        source = DEFAULT_QUOTAS if rows is None else rows
        flat: dict[tuple[LimitClass, Tier], QuotaRow] = {}

        for limit_class in LimitClass:
            for tier in Tier:
                row = source.get(limit_class, {}).get(tier)
                if row is None:
                    raise ConfigurationAppError(
                        code="quota_row_missing",
                        message=(
                            f"No quota configured for class '{limit_class.value}' "
                            f"and tier '{tier.value}'"
                        ),
                        details={"limit_class": limit_class.value, "tier": tier.value},
                    )
                _validate_row(limit_class, tier, row)
                flat[(limit_class, tier)] = row

        self._rows = MappingProxyType(flat)

    def lookup(self, limit_class: LimitClass, tier: Tier) -> QuotaRow:
        """Return the quota row for a class and tier."""
        return self._rows[(LimitClass(limit_class), Tier(tier))]

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"QuotaTable(rows={len(self._rows)})"


def _validate_row(limit_class: LimitClass, tier: Tier, row: QuotaRow) -> None:
    if row.limit < 1 or row.window_ms < MIN_WINDOW_MS:
        raise ConfigurationAppError(
            code="quota_row_invalid",
            message=(
                f"Invalid quota for class '{limit_class.value}' and tier "
                f"'{tier.value}': limit must be >= 1 and window_ms >= {MIN_WINDOW_MS}"
            ),
            details={
                "limit_class": limit_class.value,
                "tier": tier.value,
                "context": {"limit": row.limit, "window_ms": row.window_ms},
            },
        )
