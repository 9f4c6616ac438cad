"""HTTP transport protocol and the default aiohttp implementation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import aiohttp
from yarl import URL

from loadcheck._internal.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from loadcheck.dsl.request import RequestSpec


@dataclass(frozen=True)
class Response:
    """A fully-read HTTP response.

    Attributes:
        status: HTTP status code.
        headers: Response headers.
        body: Raw response body.
    """

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""

    def json(self) -> Any:
        """Decode the body as JSON."""
        return json.loads(self.body)

    def text(self) -> str:
        """Decode the body as UTF-8, replacing invalid bytes."""
        return self.body.decode("utf-8", errors="replace")


@runtime_checkable
class Transport(Protocol):
    """Sends a RequestSpec and returns the complete Response.

    Implementations own HTTP semantics, TLS, retries and connection pooling.
    Any failure to obtain a response must surface as ``TransportError``.
    """

    async def send(self, spec: RequestSpec) -> Response:
        """Send ``spec`` and return its response.

        Raises:
            TransportError: On timeout, refused connection or a malformed
                response.
        """
        ...


class AiohttpTransport:
    """Transport wrapping a shared ``aiohttp.ClientSession``.

    Must be used as an async context manager; one instance is shared by all
    virtual users of a run.

    Attributes:
        timeout: Total per-request timeout in seconds.
        connector_limit: Maximum simultaneous connections.
    """

    def __init__(self, timeout: float = 30.0, connector_limit: int = 100) -> None:
        self.timeout = timeout
        self.connector_limit = connector_limit
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> AiohttpTransport:
        """Open the underlying aiohttp session."""
        # unsafe=True keeps cookies set by targets addressed by IP
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            connector=aiohttp.TCPConnector(limit=self.connector_limit),
            cookie_jar=aiohttp.CookieJar(unsafe=True),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(self, spec: RequestSpec) -> Response:
        """Send a request and read the whole body.

        Raises:
            RuntimeError: If used outside of an async context manager.
            TransportError: If the request fails or times out.
        """
        if self._session is None:
            msg = "AiohttpTransport must be used as an async context manager"
            raise RuntimeError(msg)

        try:
            async with self._session.request(
                spec.method,
                spec.url,
                headers=dict(spec.headers),
                cookies=self._request_cookies(self._session, spec),
                data=spec.body,
            ) as resp:
                body = await resp.read()
                return Response(
                    status=resp.status,
                    headers=dict(resp.headers),
                    body=body,
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f"{spec.method} {spec.url} failed: {type(exc).__name__}: {exc}"
            raise TransportError(msg) from exc

    @staticmethod
    def _request_cookies(session: aiohttp.ClientSession, spec: RequestSpec) -> dict[str, str]:
        """Select the cookies to send, honouring each cookie's replace flag."""
        if not spec.cookies:
            return {}
        jar = session.cookie_jar.filter_cookies(URL(spec.url))
        return {
            name: cookie.value
            for name, cookie in spec.cookies.items()
            if cookie.replace or name not in jar
        }
