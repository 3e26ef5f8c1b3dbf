from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (rate limiter wiring, middleware, handlers,
routers) so tests can build isolated apps with their own stores and clocks.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractWindowStore
from app.adapters.rate_limit.factory import create_window_store
from app.api.routes import forms_router, health_router, rate_limits_router
from app.core.auth import SessionDirectory, StaticSessionDirectory
from app.core.config import Settings, settings as global_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.services.identity_service import UserTierResolver
from app.services.quota import QuotaTable
from app.services.rate_limit_service import RateDecisionEngine
from app.services.reclaimer_service import Reclaimer

logger = logging.getLogger(__name__)


def build_rate_limiter(
    cfg: Settings,
    *,
    store: AbstractWindowStore | None = None,
    quota_table: QuotaTable | None = None,
) -> RateDecisionEngine:
    """Build the decision engine and its owned store and reclaimer.

    Raises:
        ConfigurationAppError: If the quota table is incomplete.
    """
    table = quota_table or QuotaTable()
    window_store = store or create_window_store(cfg.redis)
    reclaimer = Reclaimer(window_store, probability=cfg.app.rate_limit_sweep_probability)
    return RateDecisionEngine(table, window_store, reclaimer=reclaimer)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    engine: RateDecisionEngine = app.state.rate_limiter
    interval = app.state.settings.app.rate_limit_sweep_interval_seconds

    sweeper: asyncio.Task | None = None
    if interval > 0 and engine.reclaimer is not None:
        sweeper = asyncio.create_task(engine.reclaimer.run_periodic(interval))
        logger.info("rate_limit.sweeper_started", extra={"interval_s": interval})

    try:
        yield
    finally:
        if sweeper is not None:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
        engine.store.close()


def create_app(
    cfg: Settings | None = None,
    *,
    rate_limiter: RateDecisionEngine | None = None,
    session_directory: SessionDirectory | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cfg: Settings; defaults to the global settings.
        rate_limiter: Prebuilt engine (tests inject stores/clocks here).
        session_directory: Auth collaborator; defaults to the static directory.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = cfg or global_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Form Rate Limiter",
        description=(
            "Tiered rate limiting for a form-submission service: per-IP limits on "
            "public submissions, per-user limits on the API and on form creation, "
            "backed by Redis with a per-process fallback."
        ),
        version="0.1.0",
        lifespan=_lifespan,
    )

    # Rate limiter state is created once here and owned by the app
    app.state.settings = cfg
    app.state.rate_limiter = rate_limiter or build_rate_limiter(cfg)
    app.state.user_tier_resolver = UserTierResolver(
        session_directory or StaticSessionDirectory.from_settings(cfg.app)
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(forms_router, prefix="/v1")
    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI documentation customizations
    apply_openapi_customizations(app)

    return app
