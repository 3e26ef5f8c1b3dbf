"""Factory for the configured window store.

Returns a Redis primary with an in-memory backup when a Redis URL is
configured, otherwise the in-memory store alone.
"""

from __future__ import annotations

import logging

from app.adapters.rate_limit.base import AbstractWindowStore
from app.adapters.rate_limit.failover import FailoverWindowStore
from app.adapters.rate_limit.in_memory import InMemoryWindowStore
from app.adapters.rate_limit.redis_store import RedisWindowStore, build_redis_client
from app.core.config import RedisSettings, settings

logger = logging.getLogger(__name__)


def create_window_store(
    redis_settings: RedisSettings | None = None,
    *,
    local_store: InMemoryWindowStore | None = None,
) -> AbstractWindowStore:
    """Create the window store for the current configuration.

    Args:
        redis_settings: Redis configuration; defaults to global settings.
        local_store: Process-local store to use as backup (created if omitted).

    Returns:
        AbstractWindowStore: Failover store or the in-memory store.
    """
    cfg = redis_settings or settings.redis
    local = local_store or InMemoryWindowStore()

    if not cfg.url:
        logger.info("rate_limit.store_selected", extra={"backend": local.name})
        return local

    client = build_redis_client(
        cfg.url,
        socket_timeout=cfg.socket_timeout_seconds,
        connect_timeout=cfg.connect_timeout_seconds,
        tls_verify=cfg.tls_verify,
    )
    primary = RedisWindowStore(client, key_prefix=cfg.key_prefix)
    logger.info(
        "rate_limit.store_selected",
        extra={
            "backend": "failover",
            "primary": primary.name,
            "backup": local.name,
            "tls": cfg.url.startswith("rediss://"),
            "tls_verify": cfg.tls_verify,
        },
    )
    return FailoverWindowStore(primary=primary, backup=local)
