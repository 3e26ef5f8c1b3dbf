"""Redis-backed fixed-window counter store.

Each counter is one Redis key with a native TTL equal to the window. An
increment runs as a single MULTI/EXEC transaction:

    SET key 0 PX <window_ms> NX   # open the window if absent
    INCR key                      # count this request (keeps the TTL)
    PTTL key                      # remaining window, used for reset_at

Because Redis executes the transaction atomically, concurrent callers for the
same key from any process never lose increments and never both open a window.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import redis

from app.adapters.rate_limit.base import AbstractWindowStore, CounterEntry, WindowKey
from app.core.errors import StoreUnavailableError
from app.core.logging import fingerprint
from app.services.quota import LimitClass, Tier

logger = logging.getLogger(__name__)


def build_redis_client(
    url: str,
    *,
    socket_timeout: float,
    connect_timeout: float,
    tls_verify: bool = True,
) -> redis.Redis:
    """Create a Redis client with short timeouts.

    The client connects lazily, so an unreachable server at startup does not
    prevent the application from booting; the first increment fails over.

    Args:
        url: redis:// or rediss:// connection URL.
        socket_timeout: Per-command timeout in seconds.
        connect_timeout: Connection timeout in seconds.
        tls_verify: Verify the server certificate on rediss:// URLs.
    """
    connection_kwargs = {
        "decode_responses": True,
        "socket_timeout": socket_timeout,
        "socket_connect_timeout": connect_timeout,
        "socket_keepalive": True,
        "health_check_interval": 30,
    }
    if url.startswith("rediss://") and not tls_verify:
        connection_kwargs["ssl_cert_reqs"] = None

    return redis.Redis.from_url(url, **connection_kwargs)


class RedisWindowStore(AbstractWindowStore):
    """Shared counter store on top of Redis atomic increments with TTL."""

    name = "redis"

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "rate_limit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock

    def _redis_key(self, key: WindowKey) -> str:
        return f"{self._key_prefix}:{key}"

    def increment(self, key: WindowKey, window_ms: int) -> CounterEntry:
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        name = self._redis_key(key)
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.set(name, 0, px=window_ms, nx=True)
            pipe.incr(name)
            pipe.pttl(name)
            _, count, ttl_ms = pipe.execute()
            count = int(count)
            ttl_ms = None if ttl_ms is None else int(ttl_ms)

            if ttl_ms is None or ttl_ms < 0:
                # Key lost its expiry (e.g. created by a client without TTL)
                self._client.pexpire(name, window_ms)
                ttl_ms = window_ms
        except redis.RedisError as exc:
            raise StoreUnavailableError(
                code="rate_limit_store_unavailable",
                message="Redis counter store is unavailable",
                details={"backend": self.name, "hint": type(exc).__name__},
            ) from exc
        except (TypeError, ValueError) as exc:
            raise StoreUnavailableError(
                code="rate_limit_store_bad_reply",
                message="Redis counter store returned an unexpected reply",
                details={"backend": self.name, "hint": type(exc).__name__},
            ) from exc

        now = self._clock()
        return CounterEntry(count=count, reset_at=now + ttl_ms / 1000)

    def sweep(self) -> int:
        # Redis expires counters natively.
        return 0

    def purge(self, identifier: str) -> int:
        names = [
            self._redis_key(WindowKey(limit_class, tier, identifier))
            for limit_class in LimitClass
            for tier in Tier
        ]
        try:
            removed = int(self._client.delete(*names))
        except redis.RedisError as exc:
            raise StoreUnavailableError(
                code="rate_limit_store_unavailable",
                message="Redis counter store is unavailable",
                details={"backend": self.name, "hint": type(exc).__name__},
            ) from exc

        logger.debug(
            "rate_limit.redis_purge",
            extra={
                "identifier_hash": fingerprint(identifier),
                "removed": removed,
            },
        )
        return removed

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        """Release the connection pool."""
        self._client.close()
