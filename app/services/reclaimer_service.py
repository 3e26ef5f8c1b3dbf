"""Reclaimer for expired local counters.

The in-memory store never deletes entries on read, so without a sweep the
dict grows with every distinct identifier seen. Two triggers exist:

- ``run_periodic``: an asyncio task started by the app lifespan.
- ``maybe_sweep``: a cheap per-request coin flip, used on its own where no
  background task runs (e.g. the engine embedded in a worker script).

``purge`` removes every counter of a tenant; call it after a tier change so
the tenant is not held to a window counted under the old tier.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable

from app.adapters.rate_limit.base import AbstractWindowStore
from app.core.logging import fingerprint

logger = logging.getLogger(__name__)


class Reclaimer:
    """Evict expired counters and purge tenants on demand.

    Attributes:
        probability: Chance in [0, 1] that ``maybe_sweep`` runs a sweep.
    """

    def __init__(
        self,
        store: AbstractWindowStore,
        *,
        probability: float = 0.01,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if not 0.0 <= probability <= 1.0:
            raise ValueError("probability must be within [0, 1]")

        self._store = store
        self.probability = probability
        self._rng = rng

    def sweep(self) -> int:
        """Delete every expired counter and return how many were removed."""
        removed = self._store.sweep()
        if removed:
            logger.info("rate_limit.sweep", extra={"removed": removed})
        return removed

    def maybe_sweep(self) -> bool:
        """Sweep with the configured probability.

        Returns:
            bool: True if a sweep ran.
        """
        if self.probability <= 0.0 or self._rng() >= self.probability:
            return False
        self.sweep()
        return True

    def purge(self, identifier: str) -> int:
        """Remove all counters of ``identifier`` in every class and tier."""
        removed = self._store.purge(identifier)
        logger.info(
            "rate_limit.purge",
            extra={
                "identifier_hash": fingerprint(identifier),
                "removed": removed,
            },
        )
        return removed

    async def run_periodic(self, interval_seconds: float) -> None:
        """Sweep every ``interval_seconds`` until cancelled."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        while True:
            await asyncio.sleep(interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
