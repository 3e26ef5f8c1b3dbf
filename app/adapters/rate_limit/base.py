"""Window store interfaces.

The decision engine depends on this abstraction (not the concrete
implementation) so the counter storage can be an in-process dict, Redis, or a
primary/backup combination of both without changing the decision logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from app.services.quota import LimitClass, Tier


@dataclass(frozen=True)
class WindowKey:
    """Address of one counter.

    Attributes:
        limit_class: Kind of traffic being throttled.
        tier: Subscription tier whose quota applies.
        identifier: Normalized IP or opaque user id (never empty).
    """

    limit_class: LimitClass
    tier: Tier
    identifier: str

    def __post_init__(self) -> None:
        if not self.identifier:
            raise ValueError("identifier must be a non-empty string")

    def __str__(self) -> str:
        return f"{self.limit_class.value}:{self.tier.value}:{self.identifier}"


@dataclass
class CounterEntry:
    """Counter state of one fixed window.

    Attributes:
        count: Requests recorded in the window, including the current one.
        reset_at: UNIX epoch seconds when the window ends.
    """

    count: int
    reset_at: float


class AbstractWindowStore(ABC):
    """Interface for fixed-window counter stores."""

    name: str = "abstract"

    @abstractmethod
    def increment(self, key: WindowKey, window_ms: int) -> CounterEntry:
        """Atomically count one request against ``key``.

        Opens a new window (``count=1``, ``reset_at=now+window``) when no live
        entry exists, otherwise increments the live one.

        Args:
            key: Counter address.
            window_ms: Window length used when a new window is opened.

        Returns:
            A snapshot of the entry after the increment.

        Raises:
            StoreUnavailableError: If the backing service cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Remove expired entries and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def purge(self, identifier: str) -> int:
        """Remove all counters of ``identifier`` across classes and tiers."""
        raise NotImplementedError

    def ping(self) -> bool:
        """Return True when the store can serve increments."""
        return True

    def close(self) -> None:
        """Release backend resources."""
