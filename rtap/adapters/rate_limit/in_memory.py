"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Fixed windows start at an identifier's first request, so a client can get up
  to twice the budget through in a short burst straddling a window boundary.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from rtap.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy, RateLimitResult

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    count: int
    reset_at: float


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in fixed windows.

    A window opens on the first request from an identifier (or the first one
    after the previous window expired) and lasts ``policy.window_seconds``.
    Rejected requests are not counted.

    Expired entries are reset lazily on the next request; ``sweep()`` removes
    them to bound memory, and ``start()`` runs it periodically on a daemon
    thread until ``stop()`` is called.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float = 60.0,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            clock: Time source function returning UNIX time in seconds.
            sweep_interval_seconds: Delay between background sweeps.

        Raises:
            ValueError: If sweep_interval_seconds is not positive.
        """
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")

        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}
        self._stop_event = threading.Event()
        self._sweeper: threading.Thread | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _get_or_reset_state(self, identifier: str, policy: RateLimitPolicy, now: float) -> _WindowState:
        state = self._state_by_key.get(identifier)
        if state is None or state.reset_at <= now:
            state = _WindowState(count=0, reset_at=now + policy.window_seconds)
            self._state_by_key[identifier] = state
        return state

    def admit(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count one request for ``identifier`` under ``policy``.

        Args:
            identifier: Client key (e.g. "api:203.0.113.7").
            policy: Window and budget to apply.

        Returns:
            RateLimitResult with the decision and window metadata.
        """
        now = self._clock()

        with self._lock:
            state = self._get_or_reset_state(identifier, policy, now)

            if state.count >= policy.max_requests:
                return RateLimitResult(
                    admitted=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset_at=state.reset_at,
                    retry_after_seconds=max(0, int(math.ceil(state.reset_at - now))),
                )

            state.count += 1
            return RateLimitResult(
                admitted=True,
                limit=policy.max_requests,
                remaining=policy.max_requests - state.count,
                reset_at=state.reset_at,
                retry_after_seconds=None,
            )

    def sweep(self) -> int:
        """Drop entries whose window has expired.

        Returns:
            Number of removed entries.
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, state in self._state_by_key.items() if state.reset_at <= now]
            for key in expired:
                del self._state_by_key[key]
            remaining = len(self._state_by_key)

        if expired:
            logger.debug(
                "rate_limit.sweep",
                extra={"removed": len(expired), "entries": remaining},
            )
        return len(expired)

    def start(self) -> None:
        """Start the background sweeper. Calling it twice is a no-op."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()

    def stop(self) -> None:
        """Stop the background sweeper and wait for it to exit."""
        self._stop_event.set()
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.join()

    def _run_sweeper(self) -> None:
        while not self._stop_event.wait(self._sweep_interval):
            try:
                self.sweep()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
