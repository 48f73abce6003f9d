"""Shared test fixtures for the Stampede test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import aiohttp
import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Iterator

    from yarl import URL


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
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Fake clients
# =============================================================================


class FakeClient:
    """Scripted ``RequestClient`` that never touches the network.

    Calls are numbered in arrival order. Calls whose number is in ``fail_calls``
    raise ``aiohttp.ClientConnectionError``; the others return ``status``
    after ``delay`` seconds. Peak concurrency is tracked.
    """

    def __init__(
        self,
        status: int = 200,
        *,
        delay: float = 0.0,
        fail_calls: Iterable[int] = (),
        statuses: dict[int, int] | None = None,
    ) -> None:
        self.status = status
        self.delay = delay
        self.fail_calls = set(fail_calls)
        self.statuses = statuses or {}
        self.calls = 0
        self.urls: list[URL] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def get(self, url: URL) -> int:
        call = self.calls
        self.calls += 1
        self.urls.append(url)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if call in self.fail_calls:
                msg = "connection refused"
                raise aiohttp.ClientConnectionError(msg)
            return self.statuses.get(call, self.status)
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_client() -> FakeClient:
    """Fake client answering 200 immediately."""
    return FakeClient()


@pytest.fixture
def make_fake_client() -> type[FakeClient]:
    """Factory for scripted fake clients: ``make_fake_client(503, delay=0.01)``."""
    return FakeClient


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@pytest.fixture
def closed_port_url() -> str:
    """URL of a localhost port nothing listens on."""
    return f"http://127.0.0.1:{_get_free_port()}/"


# =============================================================================
# Target HTTP server handlers
# =============================================================================


async def _health_handler(request: web.Request) -> web.Response:
    """Simple health check endpoint."""
    return web.json_response({"status": "ok"})


async def _status_handler(request: web.Request) -> web.Response:
    """Return the status code given in the path (``/status/503``)."""
    status = int(request.match_info["code"])
    return web.json_response({"status": status}, status=status)


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _large_handler(request: web.Request) -> web.Response:
    """Return a body that is never read by the client."""
    return web.Response(body=b"x" * 256 * 1024)


def _create_target_app() -> web.Application:
    """Build the target server app with all test routes."""
    app = web.Application()
    app.router.add_get("/health", _health_handler)
    app.router.add_get("/status/{code:\\d+}", _status_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_get("/large", _large_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def target_server() -> AsyncIterator[str]:
    """Aiohttp target server running on the test's event loop.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    runner = web.AppRunner(_create_target_app())
    await runner.setup()
    port = _get_free_port()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_target_server() -> Iterator[str]:
    """Target server running in a background thread for sync tests.

    Needed where the code under test runs its own event loop, e.g. the
    ``LoadTestRunner`` and the CLI.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(_create_target_app())
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
