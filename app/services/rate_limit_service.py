"""Rate decision engine.

Turns (limit class, identifier, tier) into an allow/deny decision by looking
up the quota row, counting the request in the window store and comparing the
post-increment count against the limit. The denied request is itself counted,
and counts never go down.

The engine is backend-agnostic: failover between Redis and the local store
happens inside the store it is given.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractWindowStore, CounterEntry, WindowKey
from app.core.logging import fingerprint
from app.services.quota import LimitClass, QuotaTable, Tier
from app.services.reclaimer_service import Reclaimer

logger = logging.getLogger(__name__)

UNKNOWN_IP = "unknown"
ANONYMOUS_USER = "anonymous"


@dataclass(frozen=True)
class Decision:
    """Outcome of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window for the applied quota row.
        remaining: Requests left in the window (0 when blocked).
        reset_at_ms: UNIX epoch milliseconds when the window resets.
        retry_after_seconds: Seconds to wait; set only when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None = None


def sentinel_for(limit_class: LimitClass) -> str:
    """Return the shared identifier used when identity is unresolved."""
    if LimitClass(limit_class) is LimitClass.SUBMISSION:
        return UNKNOWN_IP
    return ANONYMOUS_USER


class RateDecisionEngine:
    """Fixed-window rate limiter over a pluggable window store.

    Args:
        quota_table: Static quota rows.
        store: Counter store (in-memory, Redis, or failover of both).
        reclaimer: Optional reclaimer given a sweep chance after each check.
        clock: Time source returning UNIX time in seconds.
    """

    def __init__(
        self,
        quota_table: QuotaTable,
        store: AbstractWindowStore,
        *,
        reclaimer: Reclaimer | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.quota_table = quota_table
        self.store = store
        self.reclaimer = reclaimer
        self._clock = clock

    def check(self, limit_class: LimitClass, identifier: str, tier: Tier) -> Decision:
        """Count one request and decide whether it is allowed.

        Never raises because of the store: if no store can be consulted the
        request is allowed (fail open) and the failure is logged.

        Args:
            limit_class: Kind of traffic.
            identifier: Normalized IP or user id; empty maps to a sentinel.
            tier: Subscription tier (already validated).

        Returns:
            Decision for this request.
        """
        limit_class = LimitClass(limit_class)
        tier = Tier.parse(tier)
        row = self.quota_table.lookup(limit_class, tier)
        key = WindowKey(limit_class, tier, identifier or sentinel_for(limit_class))

        try:
            entry = self._increment(key, row.window_ms)
        except Exception as exc:
            logger.error(
                "rate_limit.fail_open",
                extra={
                    "limit_class": limit_class.value,
                    "tier": tier.value,
                    "identifier_hash": fingerprint(key.identifier),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            return Decision(
                allowed=True,
                limit=row.limit,
                remaining=row.limit,
                reset_at_ms=int((self._clock() * 1000) + row.window_ms),
            )
        finally:
            self._give_reclaimer_a_chance()

        decision = self._decide(row.limit, entry)
        log = logger.debug if decision.allowed else logger.warning
        log(
            "rate_limit.allowed" if decision.allowed else "rate_limit.exceeded",
            extra={
                "limit_class": limit_class.value,
                "tier": tier.value,
                "identifier_hash": fingerprint(key.identifier),
                "limit": decision.limit,
                "remaining": decision.remaining,
                "window_ms": row.window_ms,
                "retry_after_s": decision.retry_after_seconds,
            },
        )
        return decision

    def _increment(self, key: WindowKey, window_ms: int) -> CounterEntry:
        entry = self.store.increment(key, window_ms)
        if self._clock() >= entry.reset_at:
            # Window rolled between the increment and now: count in a fresh one.
            entry = self.store.increment(key, window_ms)
        return entry

    def _decide(self, limit: int, entry: CounterEntry) -> Decision:
        allowed = entry.count <= limit
        remaining = max(0, limit - entry.count)
        reset_at_ms = int(math.ceil(entry.reset_at * 1000))

        if allowed:
            return Decision(
                allowed=True,
                limit=limit,
                remaining=remaining,
                reset_at_ms=reset_at_ms,
            )

        retry_after = max(1, int(math.ceil(entry.reset_at - self._clock())))
        return Decision(
            allowed=False,
            limit=limit,
            remaining=remaining,
            reset_at_ms=reset_at_ms,
            retry_after_seconds=retry_after,
        )

    def _give_reclaimer_a_chance(self) -> None:
        if self.reclaimer is None:
            return
        try:
            self.reclaimer.maybe_sweep()
        except Exception:
            logger.exception("rate_limit.sweep_failed")

    def purge(self, identifier: str) -> int:
        """Drop all counters of ``identifier`` (e.g. after a tier upgrade)."""
        if self.reclaimer is not None:
            return self.reclaimer.purge(identifier)
        return self.store.purge(identifier)
