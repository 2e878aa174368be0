"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Explicit ownership: the limiter lives on ``app.state`` and is created and
  started/stopped by the app factory, never as a module global.
- Swap-friendly: storage backend can be replaced behind an abstract interface.

Rate limiting strategy:
- Fixed-window limit per client IP, namespaced by preset ("auth", "api").
- Unattributable callers share the "unknown" bucket.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import Request

from rtap.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy, RateLimitResult
from rtap.core.client_ip import UNKNOWN_CLIENT, resolve_rate_limit_identifier
from rtap.core.config import settings
from rtap.core.errors import RateLimitAppError
from rtap.core.logging import hash_identifier

logger = logging.getLogger(__name__)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application."""

    return request.app.state.rate_limiter


def _build_rate_limit_key(policy: RateLimitPolicy, client_id: str) -> str:
    return f"{policy.name}:{client_id}"


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "Retry-After": str(result.retry_after_seconds or 0),
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(result.reset_at)),
    }


def check_rate_limit(request: Request, policy: RateLimitPolicy) -> RateLimitResult:
    """Admit the current request under ``policy``.

    Raises:
        RateLimitAppError: When the budget is exhausted (rendered as 429).
    """

    limiter = get_rate_limiter(request)
    client_id = resolve_rate_limit_identifier(request.headers)
    result = limiter.admit(_build_rate_limit_key(policy, client_id), policy)

    log_extra = {
        "policy": policy.name,
        "key_hash": hash_identifier(client_id),
        "unattributed": client_id == UNKNOWN_CLIENT,
        "limit": result.limit,
        "remaining": result.remaining,
        "window_s": policy.window_seconds,
    }

    if result.admitted:
        logger.debug("rate_limit.allowed", extra=log_extra)
        return result

    logger.warning(
        "rate_limit.exceeded",
        extra={**log_extra, "retry_after_s": result.retry_after_seconds or 0},
    )

    raise RateLimitAppError(
        code="rate_limit_exceeded",
        message="Rate limit exceeded. Try again later.",
        headers=_rate_limit_headers(result) if settings.app.rate_limit_include_headers else None,
    )


def rate_limit(policy_factory: Callable[[], RateLimitPolicy]) -> Callable[[Request], Awaitable[None]]:
    """Build a dependency enforcing the preset returned by ``policy_factory``.

    The factory is called per request so settings changes (mostly in tests)
    take effect without rebuilding routes.

    Usage:
        @router.post("/signin", dependencies=[Depends(enforce_auth_rate_limit)])
    """

    async def _enforce(request: Request) -> None:
        if not settings.app.rate_limit_enabled:
            return
        check_rate_limit(request, policy_factory())

    return _enforce


# Presets resolve settings lazily so patched or reloaded settings apply.
enforce_api_rate_limit = rate_limit(lambda: settings.app.api_policy())
enforce_auth_rate_limit = rate_limit(lambda: settings.app.auth_policy())
