from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (middleware, handlers, routers) and owns the
long-lived collaborators: the rate limiter, the operation repository and
the access service live on ``app.state`` rather than in module globals, so
each app (and each test) gets its own.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from rtap.adapters.operations.base import AbstractOperationRepository
from rtap.adapters.operations.in_memory import InMemoryOperationRepository
from rtap.adapters.rate_limit.base import AbstractRateLimiter
from rtap.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from rtap.api.routes import health_router, operations_router
from rtap.core.config import settings
from rtap.core.exception_handlers import setup_exception_handlers
from rtap.core.logging import configure_logging
from rtap.core.middleware import request_context_middleware
from rtap.core.openapi import apply_openapi_customizations
from rtap.services.access_service import AccessFilterService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    limiter: AbstractRateLimiter = app.state.rate_limiter
    limiter.start()
    logger.info("app.startup", extra={"app_env": settings.app_env})
    try:
        yield
    finally:
        limiter.stop()
        logger.info("app.shutdown")


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    operation_repository: AbstractOperationRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use; defaults to a fresh in-memory limiter.
        operation_repository: Operation store; defaults to an empty in-memory one.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="RTAP Access API",
        description=(
            "Red-team assessment platform API: operations filtered by visibility "
            "and access groups, role-gated mutations, and per-client rate limits."
        ),
        version="0.1.0",
        lifespan=_lifespan,
    )

    if rate_limiter is None:
        rate_limiter = InMemoryFixedWindowRateLimiter(
            sweep_interval_seconds=settings.app.rate_limit_sweep_interval_seconds,
        )
    if operation_repository is None:
        operation_repository = InMemoryOperationRepository()

    app.state.rate_limiter = rate_limiter
    app.state.operation_repository = operation_repository
    app.state.access_service = AccessFilterService()

    app.middleware("http")(request_context_middleware)

    setup_exception_handlers(app)

    app.include_router(operations_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
