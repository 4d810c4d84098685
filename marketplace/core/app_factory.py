"""Application factory for the FastAPI app.

Builds the app and owns the lifetime of the process-local state: one rate
limit store and one TTL cache per app, exposed on ``app.state``, with their
background sweepers tied to the application lifespan.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from marketplace.adapters.rate_limit.base import AbstractRateLimiter
from marketplace.adapters.rate_limit.in_memory import InMemoryRateLimiter
from marketplace.api.routes import health_router
from marketplace.core.config import settings
from marketplace.core.edge_filter import EdgeRequestFilter
from marketplace.core.exception_handlers import setup_exception_handlers
from marketplace.core.logging import configure_logging
from marketplace.core.middleware import request_id_middleware
from marketplace.core.rate_limit import DEFAULT_ROUTE_POLICIES, RoutePolicyTable
from marketplace.core.sweeper import PeriodicSweeper
from marketplace.utils.simple_cache import SimpleTTLCache

logger = logging.getLogger(__name__)


def create_app(
    *,
    limiter: AbstractRateLimiter | None = None,
    policies: RoutePolicyTable | None = None,
    cache: SimpleTTLCache | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        limiter: Rate limit store; defaults to a fresh in-memory store.
        policies: Route policy table; defaults to ``DEFAULT_ROUTE_POLICIES``.
        cache: Shared TTL cache; defaults to one built from ``CACHE_*`` settings.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if limiter is None:
        limiter = InMemoryRateLimiter()
    if policies is None:
        policies = RoutePolicyTable(DEFAULT_ROUTE_POLICIES)
    if cache is None:
        cache = SimpleTTLCache(
            default_ttl_seconds=settings.cache.default_ttl_seconds,
            max_entries=settings.cache.max_entries,
        )

    sweepers = [
        PeriodicSweeper("rate_limit", limiter.sweep, settings.edge.sweep_interval_seconds),
        PeriodicSweeper("cache", cache.cleanup, settings.cache.cleanup_interval_seconds),
    ]

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        for sweeper in sweepers:
            sweeper.start()
        logger.info(
            "app.startup",
            extra={
                "app_env": settings.app_env,
                "rate_limit_enabled": settings.edge.rate_limit_enabled,
                "route_policies": len(policies),
            },
        )
        try:
            yield
        finally:
            for sweeper in sweepers:
                await sweeper.stop()
            logger.info("app.shutdown")

    app = FastAPI(
        title=settings.app.name,
        description=(
            "Property marketplace API. Every response carries security headers; "
            "API routes are rate limited per client and route family."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    edge_filter = EdgeRequestFilter(
        limiter=limiter,
        policies=policies,
        api_prefix=settings.edge.api_prefix,
        enabled=settings.edge.rate_limit_enabled,
        log_allowed=settings.edge.log_allowed,
    )

    app.state.rate_limiter = limiter
    app.state.route_policies = policies
    app.state.cache = cache
    app.state.edge_filter = edge_filter
    app.state.sweepers = sweepers

    # Middleware: the last one registered runs first
    app.middleware("http")(edge_filter)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
