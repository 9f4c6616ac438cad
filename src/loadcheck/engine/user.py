"""The virtual user iteration loop."""

from __future__ import annotations

import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadcheck._internal.errors import TransportError
from loadcheck._internal.logging import get_logger
from loadcheck.engine._user_utils import wait_for_stop

if TYPE_CHECKING:
    import asyncio

    from loadcheck.dsl.checks import CheckSet
    from loadcheck.dsl.params import ParamStrategy
    from loadcheck.dsl.request import RequestBuilder
    from loadcheck.dsl.transport import Transport
    from loadcheck.engine.rate_limiter import TokenBucketRateLimiter
    from loadcheck.metrics.aggregator import ResultAggregator

logger = get_logger("engine.user")


class UserState(Enum):
    """State machine for a virtual user."""

    IDLE = auto()
    RUNNING = auto()
    STOPPED = auto()


class VirtualUser:
    """One simulated client issuing requests sequentially.

    Each iteration builds a request, sends it, evaluates every check and
    records the outcome. The stop event and deadline are only consulted at
    the top of an iteration, so a request already in flight always
    completes and is recorded. A transport failure is recorded as an
    iteration with every check failed and no latency sample; the loop then
    carries on.

    State machine: IDLE -> RUNNING -> STOPPED

    Attributes:
        user_id: Zero-based identifier within the run.
        iterations: Number of iterations completed so far.
    """

    def __init__(
        self,
        user_id: int,
        builder: RequestBuilder,
        checks: CheckSet,
        transport: Transport,
        aggregator: ResultAggregator,
        params: ParamStrategy,
        *,
        stop_event: asyncio.Event,
        deadline: float,
        pacing: float | None = None,
        rate_limiter: TokenBucketRateLimiter | None = None,
    ) -> None:
        """Initialize a virtual user.

        Args:
            user_id: Identifier used for logging and per-user counts.
            builder: Builds the request for each iteration.
            checks: Checks evaluated against every response.
            transport: Sends requests.
            aggregator: Shared result sink.
            params: Parameter strategy owned by this user alone.
            stop_event: Shared cancellation signal.
            deadline: ``time.monotonic()`` value after which no new
                iteration starts.
            pacing: Seconds to wait between iterations.
            rate_limiter: Optional shared throughput cap.
        """
        self.user_id = user_id
        self._builder = builder
        self._checks = checks
        self._transport = transport
        self._aggregator = aggregator
        self._params = params
        self._stop_event = stop_event
        self._deadline = deadline
        self._pacing = pacing
        self._rate_limiter = rate_limiter

        self._state = UserState.IDLE
        self.iterations = 0

    @property
    def state(self) -> UserState:
        """Return the current user state."""
        return self._state

    def should_stop(self) -> bool:
        """Return True once the run is stopped or the deadline has passed."""
        return self._stop_event.is_set() or time.monotonic() >= self._deadline

    async def run(self) -> None:
        """Iterate until cancellation is observed.

        Raises:
            Exception: Whatever the request builder or parameter strategy
                raises; the user is STOPPED before it propagates.
        """
        self._state = UserState.RUNNING
        try:
            while not self.should_stop():
                if self._rate_limiter is not None and not await self._rate_limiter.acquire(
                    self._stop_event, self._deadline
                ):
                    break

                await self._iterate()
                self.iterations += 1

                if self._pacing:
                    remaining = self._deadline - time.monotonic()
                    await wait_for_stop(self._stop_event, min(self._pacing, remaining))
        finally:
            self._state = UserState.STOPPED
            logger.debug("User %d stopped after %d iterations", self.user_id, self.iterations)

    async def _iterate(self) -> None:
        spec = self._builder.build(self._params)

        start = time.monotonic()
        try:
            response = await self._transport.send(spec)
        except TransportError as exc:
            cause = exc.__cause__ if exc.__cause__ is not None else exc
            logger.debug("Request failed for user %d: %s", self.user_id, exc)
            self._aggregator.record(
                self._checks.fail_all(str(exc)),
                None,
                user_id=self.user_id,
                error_type=type(cause).__name__,
            )
            return
        latency_ms = (time.monotonic() - start) * 1000

        self._aggregator.record(
            self._checks.evaluate(response),
            latency_ms,
            user_id=self.user_id,
        )
