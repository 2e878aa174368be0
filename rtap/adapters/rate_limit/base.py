"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    """Window length and request budget applied to one identifier.

    Attributes:
        name: Preset name, used to namespace limiter keys (e.g. "auth", "api").
        window_seconds: Length of a fixed window in seconds.
        max_requests: Requests admitted per identifier per window. Values
            <= 0 reject every request.
    """

    name: str
    window_seconds: float
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        admitted: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when rejected).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when rejected.
    """

    admitted: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def admit(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count a request for ``identifier`` and decide whether it is admitted.

        Args:
            identifier: Client key (e.g. resolved client IP).
            policy: Window and budget to apply.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    def start(self) -> None:
        """Start any background maintenance. No-op by default."""

    def stop(self) -> None:
        """Stop background maintenance. No-op by default."""
