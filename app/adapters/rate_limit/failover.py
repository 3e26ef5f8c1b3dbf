"""Primary/backup window store.

Wraps the shared store (primary) and the process-local store (backup) behind
the single ``AbstractWindowStore`` interface so the decision engine stays
backend-agnostic. Every call tries the primary first; a
``StoreUnavailableError`` sends that single call to the backup.

During a primary outage limits therefore become per-process. Counts recorded
in the backup are never copied to the primary.
"""

from __future__ import annotations

import logging

from app.adapters.rate_limit.base import AbstractWindowStore, CounterEntry, WindowKey
from app.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class FailoverWindowStore(AbstractWindowStore):
    """Route increments to ``primary`` and fall back to ``backup``."""

    name = "failover"

    def __init__(self, primary: AbstractWindowStore, backup: AbstractWindowStore) -> None:
        self.primary = primary
        self.backup = backup

    def increment(self, key: WindowKey, window_ms: int) -> CounterEntry:
        try:
            return self.primary.increment(key, window_ms)
        except StoreUnavailableError as exc:
            logger.warning(
                "rate_limit.store_fallback",
                extra={
                    "primary": self.primary.name,
                    "backup": self.backup.name,
                    "limit_class": key.limit_class.value,
                    "tier": key.tier.value,
                    "reason": exc.code,
                },
            )
            return self.backup.increment(key, window_ms)

    def sweep(self) -> int:
        return self.primary.sweep() + self.backup.sweep()

    def purge(self, identifier: str) -> int:
        removed = self.backup.purge(identifier)
        try:
            removed += self.primary.purge(identifier)
        except StoreUnavailableError as exc:
            logger.warning(
                "rate_limit.purge_primary_unavailable",
                extra={"primary": self.primary.name, "reason": exc.code},
            )
        return removed

    def ping(self) -> bool:
        return self.primary.ping()

    def close(self) -> None:
        self.primary.close()
        self.backup.close()
