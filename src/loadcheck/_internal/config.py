"""Run configuration for loadcheck."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass

from loadcheck._internal.errors import ConfigError

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class RunConfig:
    """Parameters of a single load-test run.

    Created once before the run and read-only afterwards.

    Attributes:
        virtual_users: Number of concurrent virtual users. Must be >= 1.
        duration_seconds: Run length in seconds. Zero means the deadline
            has already elapsed and no iteration starts.
        pacing_seconds: Delay each user waits between iterations.
            None means back-to-back iterations.
        rate_limit: Maximum requests per second across all users.
            None means no cap (concurrency-bound only).
        seed: Base seed for per-user parameter strategies. User ``n`` is
            seeded with ``seed + n``. None means nondeterministic.
        drain_timeout: Seconds to wait for in-flight iterations after the
            run stops before cancelling them. None waits indefinitely.
        request_timeout: Per-request timeout used by the default
            aiohttp transport.
    """

    virtual_users: int = 1
    duration_seconds: float = 10.0
    pacing_seconds: float | None = None
    rate_limit: float | None = None
    seed: int | None = None
    drain_timeout: float | None = None
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if isinstance(self.virtual_users, bool) or not isinstance(self.virtual_users, int):
            msg = f"virtual_users must be an integer, got {self.virtual_users!r}"
            raise ConfigError(msg)
        if self.virtual_users < 1:
            msg = f"virtual_users must be >= 1, got {self.virtual_users}"
            raise ConfigError(msg)
        for name in (
            "duration_seconds",
            "pacing_seconds",
            "rate_limit",
            "drain_timeout",
            "request_timeout",
        ):
            value = getattr(self, name)
            if value is not None and not math.isfinite(value):
                msg = f"{name} must be a finite number, got {value}"
                raise ConfigError(msg)
        if self.duration_seconds < 0:
            msg = f"duration_seconds must be non-negative, got {self.duration_seconds}"
            raise ConfigError(msg)
        if self.pacing_seconds is not None and self.pacing_seconds < 0:
            msg = f"pacing_seconds must be non-negative, got {self.pacing_seconds}"
            raise ConfigError(msg)
        if self.rate_limit is not None and self.rate_limit <= 0:
            msg = f"rate_limit must be positive, got {self.rate_limit}"
            raise ConfigError(msg)
        if self.drain_timeout is not None and self.drain_timeout < 0:
            msg = f"drain_timeout must be non-negative, got {self.drain_timeout}"
            raise ConfigError(msg)
        if self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigError(msg)


def parse_duration(text: str) -> float:
    """Parse a duration string into seconds.

    Accepts a bare number of seconds (``"20"``, ``"1.5"``) or unit-suffixed
    parts in the k6 style: ``"500ms"``, ``"20s"``, ``"1m30s"``, ``"2h"``.

    Args:
        text: Duration string.

    Returns:
        Duration in seconds.

    Raises:
        ConfigError: If the string is empty or malformed.
    """
    value = text.strip()
    if not value:
        msg = "duration must not be empty"
        raise ConfigError(msg)

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            msg = f"invalid duration: {text!r}"
            raise ConfigError(msg)
        return seconds

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(value) or position == 0:
        msg = f"invalid duration: {text!r}"
        raise ConfigError(msg)
    return total


def _env_float(name: str, default: str | None) -> float | None:
    raw = os.environ.get(name, default)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None


def _env_int(name: str, default: str | None) -> int | None:
    raw = os.environ.get(name, default)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        msg = f"{name} must be an integer, got: {raw!r}"
        raise ConfigError(msg) from None


def load_run_config() -> RunConfig:
    """Load a RunConfig from environment variables with defaults.

    Environment variables:
        LOADCHECK_VUS: Number of virtual users (default: 1).
        LOADCHECK_DURATION: Run duration, e.g. ``20s`` (default: 10s).
        LOADCHECK_PACING: Seconds between iterations per user.
        LOADCHECK_RATE_LIMIT: Max requests per second across all users.
        LOADCHECK_SEED: Base seed for parameter generation.
        LOADCHECK_TIMEOUT: Request timeout in seconds (default: 30.0).

    Returns:
        Populated RunConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    virtual_users = _env_int("LOADCHECK_VUS", "1")
    duration = parse_duration(os.environ.get("LOADCHECK_DURATION", "10s"))
    timeout = _env_float("LOADCHECK_TIMEOUT", "30.0")

    return RunConfig(
        virtual_users=virtual_users if virtual_users is not None else 1,
        duration_seconds=duration,
        pacing_seconds=_env_float("LOADCHECK_PACING", None),
        rate_limit=_env_float("LOADCHECK_RATE_LIMIT", None),
        seed=_env_int("LOADCHECK_SEED", None),
        request_timeout=timeout if timeout is not None else 30.0,
    )


def secret_from_env(name: str) -> str:
    """Return a required secret (e.g. an auth token) from the environment.

    Raises:
        ConfigError: If the variable is unset or empty.
    """
    value = os.environ.get(name, "")
    if not value:
        msg = f"{name} must be set"
        raise ConfigError(msg)
    return value
