"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a lock covers the read-modify-write of a single entry.
- Expired entries are replaced on increment but only deleted by ``sweep``.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractWindowStore, CounterEntry, WindowKey


class InMemoryWindowStore(AbstractWindowStore):
    """Counter store backed by a dict guarded by one lock.

    Windows start at the first request for a key (they are not aligned to the
    clock) and last ``window_ms``. All requests until ``reset_at`` share one
    counter.

    Important:
        This store is per-process only. It is the fallback when Redis is
        unreachable and is never synchronized back to Redis.
    """

    name = "memory"

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[WindowKey, CounterEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def increment(self, key: WindowKey, window_ms: int) -> CounterEntry:
        """Count one request against ``key``.

        Args:
            key: Counter address.
            window_ms: Window length in milliseconds.

        Returns:
            Copy of the entry after the increment.

        Raises:
            ValueError: If window_ms is not positive.
        """
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or now >= entry.reset_at:
                entry = CounterEntry(count=0, reset_at=now + window_ms / 1000)
                self._entries[key] = entry
            entry.count += 1
            return CounterEntry(count=entry.count, reset_at=entry.reset_at)

    def get(self, key: WindowKey) -> CounterEntry | None:
        """Return a snapshot of the entry for ``key`` (expired or not)."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return CounterEntry(count=entry.count, reset_at=entry.reset_at)

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.reset_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def purge(self, identifier: str) -> int:
        with self._lock:
            matching = [key for key in self._entries if key.identifier == identifier]
            for key in matching:
                del self._entries[key]
        return len(matching)
