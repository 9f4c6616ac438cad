"""Shared test fixtures for the loadcheck test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from loadcheck._internal.errors import TransportError
from loadcheck.dsl.transport import Response

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

    from loadcheck.dsl.request import RequestSpec


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# In-memory transports
# =============================================================================


class RecordingTransport:
    """Transport double that answers every request with a fixed response."""

    def __init__(
        self,
        response: Response | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response or Response(status=200, body=b'{"count": 1}')
        self.delay = delay
        self.requests: list[RequestSpec] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def send(self, spec: RequestSpec) -> Response:
        self.requests.append(spec)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            else:
                await asyncio.sleep(0)
            return self.response
        finally:
            self.in_flight -= 1


class FailingTransport:
    """Transport double whose every request fails."""

    def __init__(self, cause: Exception | None = None) -> None:
        self.cause = cause or ConnectionRefusedError("connection refused")
        self.calls = 0

    async def send(self, spec: RequestSpec) -> Response:
        self.calls += 1
        await asyncio.sleep(0)
        raise TransportError(f"{spec.method} {spec.url} failed") from self.cause


@pytest.fixture
def ok_transport() -> RecordingTransport:
    """Transport that instantly returns 200 with ``{"count": 1}``."""
    return RecordingTransport()


@pytest.fixture
def make_transport() -> Callable[..., RecordingTransport]:
    """Factory for RecordingTransport with a custom response or delay."""
    return RecordingTransport


@pytest.fixture
def failing_transport() -> FailingTransport:
    """Transport that always raises TransportError."""
    return FailingTransport()


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# =============================================================================
# Echo HTTP server handlers
# =============================================================================


async def _task_list_handler(request: web.Request) -> web.Response:
    """Task listing: no matches for the name filter ``z``, otherwise three."""
    count = 0 if request.query.get("name") == "z" else 3
    return web.json_response({"count": count, "query": dict(request.query)})


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back request details as JSON."""
    body = await request.read()
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "query": dict(request.query),
            "headers": dict(request.headers),
            "cookies": dict(request.cookies),
            "body": body.decode("utf-8", errors="replace"),
        },
        status=200,
    )


async def _set_cookie_handler(request: web.Request) -> web.Response:
    """Store ``?name=value`` pairs as cookies on the client."""
    response = web.json_response({"set": dict(request.query)})
    for name, value in request.query.items():
        response.set_cookie(name, value)
    return response


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _not_json_handler(request: web.Request) -> web.Response:
    return web.Response(text="<html>maintenance</html>", content_type="text/html")


def _create_echo_app() -> web.Application:
    """Build the echo server app with all test routes."""
    app = web.Application()
    app.router.add_get("/api/task", _task_list_handler)
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/cookies/set", _set_cookie_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    app.router.add_get("/html", _not_json_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def echo_server() -> AsyncIterator[str]:
    """Aiohttp echo server fixture.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    app = _create_echo_app()
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def unused_url() -> str:
    """URL of a localhost port with nothing listening on it."""
    return f"http://127.0.0.1:{_get_free_port()}/api/task"


@pytest.fixture
def sync_echo_server() -> Iterator[str]:
    """Echo server running in a background thread for sync tests.

    Needed by tests of ``run_load_test``, which owns its own event loop
    and blocks the main thread.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        app = _create_echo_app()
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
