"""Tests for the token-bucket rate limiter."""

from __future__ import annotations

import asyncio
import time

import pytest

from loadcheck.engine.rate_limiter import TokenBucketRateLimiter


class TestTokenBucketInit:
    """Tests for rate limiter initialization."""

    def test_default_capacity_equals_rate(self) -> None:
        assert TokenBucketRateLimiter(rate=10.0).capacity == 10.0

    def test_default_capacity_at_least_one_token(self) -> None:
        assert TokenBucketRateLimiter(rate=0.5).capacity == 1.0

    def test_custom_capacity(self) -> None:
        assert TokenBucketRateLimiter(rate=10.0, capacity=5.0).capacity == 5.0

    def test_rate_property(self) -> None:
        assert TokenBucketRateLimiter(rate=42.0).rate == 42.0

    @pytest.mark.parametrize("rate", [0.0, -1.0])
    def test_rejects_non_positive_rate(self, rate: float) -> None:
        with pytest.raises(ValueError, match="positive"):
            TokenBucketRateLimiter(rate=rate)


class TestTokenBucketAcquire:
    """Tests for the acquire method."""

    async def test_acquire_succeeds_when_tokens_available(self) -> None:
        limiter = TokenBucketRateLimiter(rate=100.0)
        assert await limiter.acquire() is True
        assert limiter.available_tokens < 100.0

    async def test_burst_capacity(self) -> None:
        limiter = TokenBucketRateLimiter(rate=100.0, capacity=5.0)
        for _ in range(5):
            assert await limiter.acquire()
        assert limiter.available_tokens < 1.0

    async def test_acquire_waits_when_empty(self) -> None:
        limiter = TokenBucketRateLimiter(rate=10.0, capacity=1.0)
        await limiter.acquire()

        # Second token arrives after ~0.1s (1 token / 10 tokens/sec)
        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start >= 0.05

    async def test_rate_controls_throughput(self) -> None:
        limiter = TokenBucketRateLimiter(rate=20.0, capacity=1.0)
        await limiter.acquire()

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        # Roughly 5/20 = 0.25s, generous tolerance
        assert time.monotonic() - start >= 0.15


class TestTokenBucketCancellation:
    """acquire() gives up once the run is over."""

    async def test_gives_up_at_deadline(self) -> None:
        limiter = TokenBucketRateLimiter(rate=1.0, capacity=1.0)
        await limiter.acquire()

        start = time.monotonic()
        acquired = await limiter.acquire(deadline=start + 0.1)

        assert acquired is False
        assert time.monotonic() - start < 0.5

    async def test_past_deadline_returns_immediately(self) -> None:
        limiter = TokenBucketRateLimiter(rate=1.0, capacity=1.0)
        await limiter.acquire()
        assert await limiter.acquire(deadline=time.monotonic() - 1.0) is False

    async def test_gives_up_when_stopped(self) -> None:
        limiter = TokenBucketRateLimiter(rate=0.5, capacity=1.0)
        await limiter.acquire()
        stop_event = asyncio.Event()

        asyncio.get_running_loop().call_later(0.05, stop_event.set)
        start = time.monotonic()
        acquired = await limiter.acquire(stop_event)

        assert acquired is False
        assert time.monotonic() - start < 1.0

    async def test_available_token_ignores_deadline(self) -> None:
        limiter = TokenBucketRateLimiter(rate=10.0)
        stop_event = asyncio.Event()
        assert await limiter.acquire(stop_event, deadline=time.monotonic() + 10) is True
