"""Shared helpers for virtual users and the scheduler."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from loadcheck._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = get_logger("engine.user_utils")


async def wait_for_stop(stop_event: asyncio.Event | None, timeout: float) -> bool:
    """Sleep up to ``timeout`` seconds, waking early if ``stop_event`` is set.

    Returns:
        True if the stop event was set before the timeout elapsed.
    """
    if timeout <= 0:
        return stop_event is not None and stop_event.is_set()
    if stop_event is None:
        await asyncio.sleep(timeout)
        return False
    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    return stop_event.is_set()


async def shutdown_users(
    user_tasks: Sequence[asyncio.Task[None]],
    stop_event: asyncio.Event,
    drain_timeout: float | None = None,
) -> int:
    """Signal every user to stop and wait for them to exit.

    Users observe the stop event at the top of their next iteration, so an
    in-flight request is allowed to finish. With a ``drain_timeout``, users
    still running after that many seconds are cancelled.

    Args:
        user_tasks: Tasks running ``VirtualUser.run``.
        stop_event: Event shared by all users of the run.
        drain_timeout: Seconds to wait before cancelling, or None to wait
            for every user to finish on its own.

    Returns:
        Number of users that had to be cancelled.
    """
    stop_event.set()
    if not user_tasks:
        return 0

    _done, pending = await asyncio.wait(user_tasks, timeout=drain_timeout)
    for task in pending:
        task.cancel()
    if pending:
        logger.warning("Cancelled %d virtual users still running after drain", len(pending))
        await asyncio.wait(pending)

    logger.debug("All virtual users shut down")
    return len(pending)
