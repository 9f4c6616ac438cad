"""Thread-safe accumulation of per-iteration outcomes."""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING

from loadcheck.metrics.models import RunResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from loadcheck.dsl.checks import CheckResult


class ResultAggregator:
    """Accumulates check outcomes and latency samples from all virtual users.

    Every mutation goes through :meth:`record` under a single lock, so the
    aggregator is safe to share between coroutines and between threads.
    :meth:`snapshot` is meant to be called once all users have stopped; the
    scheduler joins its users before reading.

    Example::

        aggregator = ResultAggregator(check_names=["is status 200"])
        aggregator.record([CheckResult("is status 200", True)], latency_ms=12.5)
        result = aggregator.snapshot()
    """

    def __init__(self, check_names: Sequence[str] = ()) -> None:
        """Initialize the aggregator.

        Args:
            check_names: Names to pre-register with zero counts so they
                appear in the result even if no iteration ever completes.
        """
        self._lock = threading.Lock()
        self._total_requests = 0
        self._passed: dict[str, int] = dict.fromkeys(check_names, 0)
        self._failed: dict[str, int] = dict.fromkeys(check_names, 0)
        self._latencies: list[float] = []
        self._transport_errors = 0
        self._errors_by_type: dict[str, int] = defaultdict(int)
        self._iterations_by_user: dict[int, int] = defaultdict(int)

    @property
    def total_requests(self) -> int:
        """Return the number of iterations recorded so far."""
        with self._lock:
            return self._total_requests

    def record(
        self,
        check_results: Sequence[CheckResult],
        latency_ms: float | None = None,
        *,
        user_id: int | None = None,
        error_type: str | None = None,
    ) -> None:
        """Record one completed iteration.

        Args:
            check_results: Outcome of every check for this iteration.
            latency_ms: Response time, or None if the transport failed.
            user_id: Virtual user that ran the iteration.
            error_type: Transport exception class name, if the request failed.
        """
        with self._lock:
            self._total_requests += 1
            for result in check_results:
                if result.passed:
                    self._passed[result.name] = self._passed.get(result.name, 0) + 1
                    self._failed.setdefault(result.name, 0)
                else:
                    self._failed[result.name] = self._failed.get(result.name, 0) + 1
                    self._passed.setdefault(result.name, 0)
            if latency_ms is not None:
                self._latencies.append(latency_ms)
            if error_type is not None:
                self._transport_errors += 1
                self._errors_by_type[error_type] += 1
            if user_id is not None:
                self._iterations_by_user[user_id] += 1

    def snapshot(self) -> RunResult:
        """Return an immutable copy of everything recorded so far."""
        with self._lock:
            return RunResult(
                total_requests=self._total_requests,
                per_check_passed=dict(self._passed),
                per_check_failed=dict(self._failed),
                latency_samples=tuple(self._latencies),
                transport_errors=self._transport_errors,
                errors_by_type=dict(self._errors_by_type),
                iterations_by_user=dict(self._iterations_by_user),
            )
