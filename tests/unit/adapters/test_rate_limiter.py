"""Unit tests for the token bucket rate limiter."""

import asyncio

import pytest

from epubtrans.core.adapters import OperationCancelledError, RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Bucket accounting and waiting."""

    def test_burst_then_empty(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=1.0, burst=3, clock=clock)
        assert [limiter.try_acquire() for _ in range(4)] == [True, True, True, False]

    def test_refill_over_time(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=2.0, burst=2, clock=clock)
        limiter.try_acquire()
        limiter.try_acquire()
        clock.now = 0.5
        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False

    def test_refill_capped_at_burst(self):
        clock = FakeClock()
        limiter = RateLimiter(rate=10.0, burst=2, clock=clock)
        clock.now = 100.0
        assert limiter.available == 2.0

    def test_per_minute(self):
        limiter = RateLimiter.per_minute(120, burst=5)
        assert limiter.rate == 2.0
        assert limiter.burst == 5

    @pytest.mark.parametrize("rate,burst", [(0, 1), (-1, 1), (1, 0)])
    def test_invalid(self, rate, burst):
        with pytest.raises(ValueError):
            RateLimiter(rate=rate, burst=burst)

    @pytest.mark.asyncio
    async def test_wait_takes_token(self):
        limiter = RateLimiter(rate=1000.0, burst=1)
        await limiter.wait()
        await asyncio.wait_for(limiter.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_wait_cancelled(self):
        limiter = RateLimiter(rate=0.001, burst=1)
        limiter.try_acquire()
        stop_event = asyncio.Event()

        async def stop_soon():
            await asyncio.sleep(0.01)
            stop_event.set()

        asyncio.get_running_loop().create_task(stop_soon())
        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(limiter.wait(stop_event), timeout=2.0)

    @pytest.mark.asyncio
    async def test_wait_already_cancelled(self):
        stop_event = asyncio.Event()
        stop_event.set()
        with pytest.raises(OperationCancelledError):
            await RateLimiter(rate=1.0, burst=1).wait(stop_event)
