"""Named response checks evaluated after every request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loadcheck._internal.errors import CheckEvaluationError, ConfigError
from loadcheck._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from loadcheck.dsl.transport import Response

    Predicate = Callable[[Response], bool]

logger = get_logger("dsl.checks")


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check against one response.

    Attributes:
        name: Check name.
        passed: Whether the predicate returned a truthy value.
        error: Error description if the predicate raised or the request
            never produced a response, None otherwise.
    """

    name: str
    passed: bool
    error: str | None = None


class CheckSet:
    """Ordered collection of named predicates.

    Every check runs against every response, in registration order, even
    after an earlier check fails. A predicate that raises counts as a failed
    check and does not stop the remaining ones.

    Example::

        checks = (
            CheckSet()
            .add("is status 200", status_is(200))
            .add("is found", json_field_gt("count", 0))
        )
    """

    def __init__(self) -> None:
        self._checks: list[tuple[str, Predicate]] = []

    def add(self, name: str, predicate: Predicate) -> CheckSet:
        """Register a check and return self for chaining.

        Raises:
            ConfigError: If a check with this name is already registered.
        """
        if name in self.names:
            msg = f"duplicate check name: {name!r}"
            raise ConfigError(msg)
        self._checks.append((name, predicate))
        return self

    @property
    def names(self) -> list[str]:
        """Return check names in registration order."""
        return [name for name, _ in self._checks]

    def __len__(self) -> int:
        return len(self._checks)

    def evaluate(self, response: Response) -> list[CheckResult]:
        """Run every check against ``response``.

        Args:
            response: The response to inspect. Predicates must not mutate it.

        Returns:
            One CheckResult per registered check, in registration order.
        """
        results: list[CheckResult] = []
        for name, predicate in self._checks:
            try:
                passed = bool(predicate(response))
            except Exception as exc:
                err = CheckEvaluationError(name, exc)
                logger.debug("%s", err, exc_info=True)
                results.append(CheckResult(name=name, passed=False, error=str(err)))
            else:
                results.append(CheckResult(name=name, passed=passed))
        return results

    def fail_all(self, reason: str) -> list[CheckResult]:
        """Return a failed CheckResult for every check (no response available)."""
        return [CheckResult(name=name, passed=False, error=reason) for name, _ in self._checks]


def status_is(expected: int) -> Predicate:
    """Predicate: the response status equals ``expected``."""

    def _check(response: Response) -> bool:
        return response.status == expected

    return _check


def json_field_gt(field_name: str, threshold: float) -> Predicate:
    """Predicate: the JSON body's top-level ``field_name`` is > ``threshold``.

    A body that is not JSON or lacks the field makes the predicate raise,
    which the CheckSet records as a failed check.
    """

    def _check(response: Response) -> bool:
        return response.json()[field_name] > threshold

    return _check
