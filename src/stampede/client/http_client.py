"""Shared HTTP client used by every worker of a run."""

from __future__ import annotations

from typing import Protocol

import aiohttp
from yarl import URL

from stampede._internal.errors import RequestBuildError

# Exceptions that mean "no HTTP response was obtained" for a single request.
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    aiohttp.ClientError,
    TimeoutError,
    OSError,
)


class RequestClient(Protocol):
    """Anything that can send one GET request and report its status code.

    ``HttpClient`` is the real implementation; tests substitute fakes.
    Implementations must be safe to share between all workers of a run and
    must raise (not return 0) when no response was obtained.
    """

    async def get(self, url: URL) -> int: ...


def build_get_request(url: str) -> URL:
    """Build the target of a GET request from a raw URL string.

    Args:
        url: The configured target URL.

    Returns:
        The parsed, absolute URL.

    Raises:
        RequestBuildError: If ``url`` cannot be used as a GET target.
    """
    try:
        target = URL(url)
        port = target.port
    except (TypeError, ValueError) as exc:
        msg = f"invalid request URL {url!r}: {exc}"
        raise RequestBuildError(msg) from exc

    if not target.is_absolute() or target.scheme not in ("http", "https"):
        msg = f"unsupported request URL {url!r}: expected an absolute http(s) URL"
        raise RequestBuildError(msg)
    if port is None:
        msg = f"unsupported request URL {url!r}: no port for scheme {target.scheme!r}"
        raise RequestBuildError(msg)
    return target


class HttpClient:
    """Concurrency-safe GET client wrapping one ``aiohttp.ClientSession``.

    Every call is bounded by a fixed total timeout. The response is released
    as soon as the status code is read, so connections go back to the pool
    even when the body is never consumed.

    Use as an async context manager::

        async with HttpClient(timeout=30.0, limit=10) as client:
            status = await client.get(URL("http://localhost:8080/"))
    """

    def __init__(self, timeout: float = 30.0, limit: int = 100) -> None:
        """Initialize the client.

        Args:
            timeout: Total per-request timeout in seconds.
            limit: Maximum number of simultaneous connections.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._limit = limit
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=aiohttp.TCPConnector(limit=self._limit),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def get(self, url: URL) -> int:
        """Send a GET request and return the response status code.

        Args:
            url: Absolute target URL, usually from ``build_get_request``.

        Returns:
            The HTTP status code of the response.

        Raises:
            RuntimeError: If the client is used outside its context manager.
            aiohttp.ClientError: On connection or protocol failures.
            TimeoutError: If the response does not arrive within the timeout.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        async with self._session.get(url) as resp:
            return resp.status
