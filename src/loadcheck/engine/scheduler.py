"""Run lifecycle: spawn virtual users, enforce the deadline, collect results."""

from __future__ import annotations

import asyncio
import signal
import sys
import time
from enum import Enum, auto
from typing import TYPE_CHECKING

from loadcheck._internal.errors import EngineError
from loadcheck._internal.logging import get_logger
from loadcheck.dsl.params import random_params_factory
from loadcheck.engine._user_utils import shutdown_users
from loadcheck.engine.rate_limiter import TokenBucketRateLimiter
from loadcheck.engine.user import VirtualUser
from loadcheck.metrics.aggregator import ResultAggregator

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadcheck._internal.config import RunConfig
    from loadcheck.dsl.checks import CheckSet
    from loadcheck.dsl.params import ParamStrategy
    from loadcheck.dsl.request import RequestBuilder
    from loadcheck.dsl.transport import Transport
    from loadcheck.metrics.models import RunResult

    ParamsFactory = Callable[[int, int | None], ParamStrategy]

logger = get_logger("engine.scheduler")


class RunState(Enum):
    """State machine for a scheduler run."""

    CREATED = auto()
    RUNNING = auto()
    STOPPING = auto()
    COMPLETED = auto()
    FAILED = auto()


class Scheduler:
    """Runs a fixed pool of virtual users until the deadline or a stop.

    All ``virtual_users`` users start together. The run ends when the
    deadline (start + duration) passes or :meth:`stop` is called; users
    finish the iteration they are in and the scheduler waits for every one
    of them before reading the aggregator, so the result only contains
    iterations that completed.

    State machine: CREATED -> RUNNING -> STOPPING -> COMPLETED
                                                  -> FAILED (a user crashed)

    A scheduler runs once.
    """

    def __init__(
        self,
        config: RunConfig,
        builder: RequestBuilder,
        checks: CheckSet,
        transport: Transport,
        *,
        params_factory: ParamsFactory | None = None,
        handle_signals: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            config: Validated run configuration.
            builder: Request builder shared by all users.
            checks: Checks evaluated against every response.
            transport: Open transport shared by all users.
            params_factory: Creates the per-user parameter strategy from
                ``(user_id, seed)``. Defaults to seeded ``RandomParams``.
            handle_signals: Install SIGINT/SIGTERM handlers that stop the
                run gracefully while it is running.
        """
        self._config = config
        self._builder = builder
        self._checks = checks
        self._transport = transport
        self._params_factory = params_factory or random_params_factory
        self._handle_signals = handle_signals

        self._state = RunState.CREATED
        self._stop_event = asyncio.Event()
        self._users: list[VirtualUser] = []
        self._previous_handlers: dict[signal.Signals, object] = {}

    @property
    def state(self) -> RunState:
        """Return the current run state."""
        return self._state

    @property
    def users(self) -> list[VirtualUser]:
        """Return the virtual users spawned by this run."""
        return list(self._users)

    def stop(self) -> None:
        """Request an early, graceful end of the run."""
        if self._state == RunState.RUNNING:
            logger.info("Graceful shutdown requested")
            self._state = RunState.STOPPING
        self._stop_event.set()

    async def run(self) -> RunResult:
        """Execute the run and return its aggregated result.

        Returns:
            RunResult covering every completed iteration.

        Raises:
            EngineError: If the scheduler already ran, or a virtual user
                crashed (for example because its parameter strategy raised).
        """
        if self._state != RunState.CREATED:
            msg = f"Scheduler already ran (state={self._state.name})"
            raise EngineError(msg)

        config = self._config
        self._state = RunState.RUNNING
        logger.info(
            "Starting run: users=%d, duration=%.1fs, pacing=%s, rate_limit=%s",
            config.virtual_users,
            config.duration_seconds,
            config.pacing_seconds,
            config.rate_limit,
        )

        aggregator = ResultAggregator(self._checks.names)
        rate_limiter = (
            TokenBucketRateLimiter(rate=config.rate_limit) if config.rate_limit is not None else None
        )

        start_time = time.monotonic()
        deadline = start_time + config.duration_seconds
        self._users = [
            VirtualUser(
                user_id,
                self._builder,
                self._checks,
                self._transport,
                aggregator,
                self._params_factory(user_id, config.seed),
                stop_event=self._stop_event,
                deadline=deadline,
                pacing=config.pacing_seconds,
                rate_limiter=rate_limiter,
            )
            for user_id in range(config.virtual_users)
        ]

        self._install_signal_handlers()
        tasks = [
            asyncio.create_task(user.run(), name=f"virtual-user-{user.user_id}")
            for user in self._users
        ]
        try:
            await self._wait_until_over(tasks, deadline)
        finally:
            if self._state == RunState.RUNNING:
                self._state = RunState.STOPPING
            await shutdown_users(tasks, self._stop_event, config.drain_timeout)
            self._remove_signal_handlers()

        failures = [
            exc for task in tasks if not task.cancelled() and (exc := task.exception()) is not None
        ]
        if failures:
            self._state = RunState.FAILED
            logger.error("Run failed: %d virtual users crashed", len(failures))
            msg = f"Virtual user crashed: {type(failures[0]).__name__}: {failures[0]}"
            raise EngineError(msg) from failures[0]

        result = aggregator.snapshot()
        self._state = RunState.COMPLETED
        logger.info(
            "Run completed: duration=%.1fs, total_requests=%d, transport_errors=%d",
            time.monotonic() - start_time,
            result.total_requests,
            result.transport_errors,
        )
        return result

    async def _wait_until_over(self, tasks: list[asyncio.Task[None]], deadline: float) -> None:
        """Return at the deadline, on stop, when a user crashes, or when all users exit."""
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        pending: set[asyncio.Future[object]] = set(tasks)
        try:
            while pending:
                timeout = deadline - time.monotonic()
                if timeout <= 0:
                    return
                done, pending = await asyncio.wait(
                    pending | {stop_waiter},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if stop_waiter in done:
                    return
                pending.discard(stop_waiter)
                if any(not task.cancelled() and task.exception() is not None for task in done):
                    return
        finally:
            stop_waiter.cancel()

    def _install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to :meth:`stop` while the run is active."""
        if not self._handle_signals:
            return

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self.stop()

        self._previous_handlers = {
            sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)
        }
        try:
            if sys.platform != "win32":
                loop = asyncio.get_running_loop()
                loop.add_signal_handler(signal.SIGINT, _signal_handler)
                loop.add_signal_handler(signal.SIGTERM, _signal_handler)
            else:
                # Windows doesn't support add_signal_handler
                signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
                signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())
        except (RuntimeError, ValueError):
            # Not on the main thread; signals stay with their current owner
            logger.debug("Signal handlers not installed", exc_info=True)
            self._handle_signals = False

    def _remove_signal_handlers(self) -> None:
        if not self._handle_signals:
            return
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in self._previous_handlers:
                loop.remove_signal_handler(sig)
        # Hand the signals back to their previous owner, e.g. asyncio.run's
        # own SIGINT handler
        for sig, handler in self._previous_handlers.items():
            if handler is not None:
                signal.signal(sig, handler)
        self._previous_handlers = {}
