"""
Token bucket rate limiter for provider requests.

One instance is created per run and shared by every worker that talks to the
provider. Waiting is cooperative: callers await ``wait()`` and can be released
early by the cancellation event.
"""

import asyncio
import time
from typing import Callable, Optional

from epubtrans.config import RATE_LIMIT_PER_MINUTE, RATE_LIMIT_BURST
from .exceptions import OperationCancelledError


class RateLimiter:
    """Steady ``rate`` tokens per second with a bucket of ``burst`` tokens.

    Example:
        >>> limiter = RateLimiter.per_minute(50, burst=10)
        >>> await limiter.wait(stop_event)
    """

    def __init__(self, rate: float, burst: int = 1, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            rate: Tokens added per second
            burst: Bucket capacity (requests allowed back to back)
            clock: Monotonic clock, injectable for tests
        """
        if rate <= 0:
            raise ValueError("rate must be > 0")
        if burst < 1:
            raise ValueError("burst must be >= 1")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def per_minute(cls, requests_per_minute: float = RATE_LIMIT_PER_MINUTE,
                   burst: int = RATE_LIMIT_BURST) -> 'RateLimiter':
        return cls(rate=requests_per_minute / 60.0, burst=burst)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last = now

    @property
    def available(self) -> float:
        """Tokens currently available (after refill)."""
        self._refill()
        return self._tokens

    def try_acquire(self) -> bool:
        """Take a token without waiting. Returns False if none is available."""
        self._refill()
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    async def wait(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Block until a token is available, then consume it.

        Raises:
            OperationCancelledError: If stop_event is set before a token is obtained
        """
        # Waiters are served one at a time, in arrival order
        async with self._lock:
            while True:
                if stop_event is not None and stop_event.is_set():
                    raise OperationCancelledError("Cancelled while waiting for rate limiter")

                if self.try_acquire():
                    return

                delay = (1.0 - self._tokens) / self.rate
                if stop_event is None:
                    await asyncio.sleep(delay)
                    continue
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    continue
