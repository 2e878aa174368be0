"""Rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter`` only, so the in-memory
fixed-window store can later be replaced by a shared counter (e.g. Redis)
without touching routes.
"""

from rtap.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy, RateLimitResult
from rtap.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
]
