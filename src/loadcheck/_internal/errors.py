"""Custom exception hierarchy for loadcheck."""

from __future__ import annotations


class LoadCheckError(Exception):
    """Base exception for all loadcheck errors.

    All custom exceptions in loadcheck inherit from this class, so any
    loadcheck-specific failure can be caught with a single except clause.
    """


class ConfigError(LoadCheckError):
    """Raised when configuration is invalid or missing.

    Fatal: raised before any virtual user starts.

    Examples:
        - ``RunConfig.virtual_users`` is less than 1.
        - An environment variable has an unparseable value.
        - A check name is registered twice on the same CheckSet.
    """


class TransportError(LoadCheckError):
    """Raised by a transport when a request cannot produce a response.

    Recovered locally by the virtual user: the iteration is recorded with
    every check failed and no latency sample, and the loop continues.

    Examples:
        - The request timed out.
        - The connection was refused.
        - The response could not be parsed.
    """


class CheckEvaluationError(LoadCheckError):
    """Wraps an exception raised inside a check predicate.

    Never escapes ``CheckSet.evaluate``; the offending check is recorded as
    failed and the remaining checks still run.
    """

    def __init__(self, check_name: str, cause: BaseException) -> None:
        self.check_name = check_name
        self.cause = cause
        super().__init__(f"check {check_name!r} raised {type(cause).__name__}: {cause}")


class EngineError(LoadCheckError):
    """Raised when the run itself cannot continue.

    Examples:
        - A virtual user crashed because its parameter strategy failed.
        - ``Scheduler.run`` was called a second time.
    """
