"""Run result dataclasses for loadcheck."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

__all__ = [
    "LatencySummary",
    "RunResult",
]


@dataclass(frozen=True)
class LatencySummary:
    """Latency statistics over a run, all in milliseconds.

    Attributes:
        count: Number of latency samples.
        latency_min: Minimum response time.
        latency_max: Maximum response time.
        latency_avg: Mean response time.
        latency_p50: 50th percentile response time.
        latency_p75: 75th percentile response time.
        latency_p90: 90th percentile response time.
        latency_p95: 95th percentile response time.
        latency_p99: 99th percentile response time.
    """

    count: int = 0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p75: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0


@dataclass(frozen=True)
class RunResult:
    """Aggregate outcome of a completed run.

    For every check name, ``total_requests`` equals the sum of its passed
    and failed counts, since every iteration is checked by every check.

    Attributes:
        total_requests: Iterations that sent a request and evaluated checks.
        per_check_passed: Passed count keyed by check name.
        per_check_failed: Failed count keyed by check name.
        latency_samples: Response times in milliseconds, in recording
            order. Iterations whose transport failed contribute none.
        transport_errors: Iterations whose transport raised.
        errors_by_type: Transport failures keyed by exception class name.
        iterations_by_user: Completed iterations keyed by virtual user id.
    """

    total_requests: int = 0
    per_check_passed: dict[str, int] = field(default_factory=dict)
    per_check_failed: dict[str, int] = field(default_factory=dict)
    latency_samples: tuple[float, ...] = ()
    transport_errors: int = 0
    errors_by_type: dict[str, int] = field(default_factory=dict)
    iterations_by_user: dict[int, int] = field(default_factory=dict)

    def check_pass_rate(self, name: str) -> float:
        """Return the fraction of iterations that passed check ``name``.

        Returns 0.0 when the check never ran.
        """
        passed = self.per_check_passed.get(name, 0)
        total = passed + self.per_check_failed.get(name, 0)
        return passed / total if total else 0.0

    def latency_summary(self) -> LatencySummary:
        """Compute latency percentiles over ``latency_samples``."""
        if not self.latency_samples:
            return LatencySummary()

        arr = np.array(self.latency_samples, dtype=np.float64)
        p50, p75, p90, p95, p99 = np.percentile(arr, [50.0, 75.0, 90.0, 95.0, 99.0])

        return LatencySummary(
            count=len(arr),
            latency_min=float(np.min(arr)),
            latency_max=float(np.max(arr)),
            latency_avg=float(np.mean(arr)),
            latency_p50=float(p50),
            latency_p75=float(p75),
            latency_p90=float(p90),
            latency_p95=float(p95),
            latency_p99=float(p99),
        )
