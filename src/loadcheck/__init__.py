"""loadcheck — a small HTTP load-test driver with response checks."""

from __future__ import annotations

from loadcheck._internal.config import RunConfig, load_run_config, parse_duration, secret_from_env
from loadcheck._internal.errors import (
    CheckEvaluationError,
    ConfigError,
    EngineError,
    LoadCheckError,
    TransportError,
)
from loadcheck.dsl.checks import CheckResult, CheckSet, json_field_gt, status_is
from loadcheck.dsl.params import ParamStrategy, RandomParams
from loadcheck.dsl.request import Cookie, RequestBuilder, RequestSpec
from loadcheck.dsl.transport import AiohttpTransport, Response, Transport
from loadcheck.engine.runner import run_load_test
from loadcheck.engine.scheduler import Scheduler
from loadcheck.metrics.aggregator import ResultAggregator
from loadcheck.metrics.models import LatencySummary, RunResult

__version__ = "0.1.0"

__all__ = [
    "AiohttpTransport",
    "CheckEvaluationError",
    "CheckResult",
    "CheckSet",
    "ConfigError",
    "Cookie",
    "EngineError",
    "LatencySummary",
    "LoadCheckError",
    "ParamStrategy",
    "RandomParams",
    "RequestBuilder",
    "RequestSpec",
    "Response",
    "ResultAggregator",
    "RunConfig",
    "RunResult",
    "Scheduler",
    "Transport",
    "TransportError",
    "json_field_gt",
    "load_run_config",
    "parse_duration",
    "run_load_test",
    "secret_from_env",
]
