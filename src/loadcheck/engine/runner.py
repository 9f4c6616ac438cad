"""Synchronous entry point for running a load test."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from typing import TYPE_CHECKING

from loadcheck._internal.logging import get_logger, setup_logging
from loadcheck.dsl.transport import AiohttpTransport
from loadcheck.engine.scheduler import Scheduler

if TYPE_CHECKING:
    from loadcheck._internal.config import RunConfig
    from loadcheck.dsl.checks import CheckSet
    from loadcheck.dsl.request import RequestBuilder
    from loadcheck.dsl.transport import Transport
    from loadcheck.engine.scheduler import ParamsFactory
    from loadcheck.metrics.models import RunResult

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back to the default asyncio event loop on Windows or if uvloop
    is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_load_test(
    config: RunConfig,
    builder: RequestBuilder,
    checks: CheckSet,
    transport: Transport | None = None,
    *,
    params_factory: ParamsFactory | None = None,
    log_level: int = logging.INFO,
) -> RunResult:
    """Run a load test to completion and return its result.

    Blocks the calling thread. When no transport is given, an
    :class:`AiohttpTransport` using ``config.request_timeout`` is opened
    for the duration of the run. A transport passed in that is an async
    context manager is entered and exited around the run as well.

    Args:
        config: Validated run configuration.
        builder: Request builder shared by all users.
        checks: Checks evaluated against every response.
        transport: Transport to send requests through.
        params_factory: Per-user parameter strategy factory.
        log_level: Level for the ``loadcheck`` logger.

    Returns:
        The aggregated RunResult.

    Raises:
        EngineError: If a virtual user crashed.
    """
    setup_logging(log_level)
    _install_uvloop()
    return asyncio.run(
        _run(config, builder, checks, transport, params_factory=params_factory)
    )


async def _run(
    config: RunConfig,
    builder: RequestBuilder,
    checks: CheckSet,
    transport: Transport | None,
    *,
    params_factory: ParamsFactory | None,
) -> RunResult:
    async with contextlib.AsyncExitStack() as stack:
        if transport is None:
            transport = await stack.enter_async_context(
                AiohttpTransport(timeout=config.request_timeout)
            )
        elif isinstance(transport, contextlib.AbstractAsyncContextManager):
            await stack.enter_async_context(transport)

        scheduler = Scheduler(
            config,
            builder,
            checks,
            transport,
            params_factory=params_factory,
        )
        return await scheduler.run()
