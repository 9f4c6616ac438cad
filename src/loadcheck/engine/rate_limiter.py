"""Token-bucket rate limiter shared by all virtual users of a run."""

from __future__ import annotations

import asyncio
import time

from loadcheck.engine._user_utils import wait_for_stop


class TokenBucketRateLimiter:
    """Async token-bucket rate limiter.

    Each ``acquire()`` consumes one token. Tokens are replenished at
    ``rate`` tokens per second, up to ``capacity`` tokens (allowing short
    bursts). When the bucket is empty, ``acquire()`` waits for a token, but
    gives up as soon as the run is stopped or its deadline passes, so a
    throttled user never sends a request after cancellation.

    Attributes:
        rate: Tokens added per second.
        capacity: Maximum token count (burst capacity).
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            rate: Tokens per second. Must be positive.
            capacity: Maximum tokens. Defaults to ``max(rate, 1)``.

        Raises:
            ValueError: If rate is not positive.
        """
        if rate <= 0:
            msg = f"rate must be positive, got {rate}"
            raise ValueError(msg)

        self._rate = rate
        self._capacity = capacity if capacity is not None else max(rate, 1.0)
        self._tokens = self._capacity
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def rate(self) -> float:
        """Return the token replenishment rate."""
        return self._rate

    @property
    def capacity(self) -> float:
        """Return the maximum token capacity."""
        return self._capacity

    @property
    def available_tokens(self) -> float:
        """Return the current number of available tokens (approximate)."""
        elapsed = time.monotonic() - self._last_refill
        return min(self._capacity, self._tokens + elapsed * self._rate)

    async def acquire(
        self,
        stop_event: asyncio.Event | None = None,
        deadline: float | None = None,
    ) -> bool:
        """Acquire a single token, waiting if necessary.

        Args:
            stop_event: Abandon the wait once this event is set.
            deadline: Abandon the wait at this ``time.monotonic()`` value.

        Returns:
            True if a token was taken, False if the wait was abandoned.
        """
        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self._rate
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return False
                    wait_time = min(wait_time, remaining)
                # Release lock during the wait so other users can queue up
                self._lock.release()
                try:
                    await wait_for_stop(stop_event, wait_time)
                finally:
                    await self._lock.acquire()
                if stop_event is not None and stop_event.is_set():
                    return False
                self._refill()
            self._tokens -= 1.0
            return True

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now

