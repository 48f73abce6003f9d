"""Tests for request building and the shared HTTP client."""

from __future__ import annotations

import aiohttp
import pytest
from yarl import URL

from stampede._internal.errors import RequestBuildError
from stampede.client.http_client import TRANSPORT_ERRORS, HttpClient, build_get_request


class TestBuildGetRequest:
    def test_absolute_http_url(self):
        target = build_get_request("http://example.com:8080/items?page=2")
        assert target.host == "example.com"
        assert target.port == 8080
        assert target.path == "/items"
        assert target.query["page"] == "2"

    def test_https_default_port(self):
        assert build_get_request("https://example.com").port == 443

    @pytest.mark.parametrize("url", ["not a url", "/relative", "ftp://example.com/file"])
    def test_rejects_unusable_urls(self, url: str):
        with pytest.raises(RequestBuildError, match="expected an absolute http"):
            build_get_request(url)

    def test_rejects_malformed_url(self):
        with pytest.raises(RequestBuildError, match="invalid request URL"):
            build_get_request("http://[::1")


class TestHttpClient:
    async def test_returns_status_code(self, target_server: str):
        async with HttpClient(timeout=5.0) as client:
            assert await client.get(URL(f"{target_server}/health")) == 200

    async def test_error_statuses_are_returned_not_raised(self, target_server: str):
        async with HttpClient(timeout=5.0) as client:
            assert await client.get(URL(f"{target_server}/status/503")) == 503
            assert await client.get(URL(f"{target_server}/status/404")) == 404

    async def test_unread_body_is_released(self, target_server: str):
        async with HttpClient(timeout=5.0, limit=1) as client:
            # With one connection, a leaked response would block the next call
            for _ in range(3):
                assert await client.get(URL(f"{target_server}/large")) == 200

    async def test_timeout_raises(self, target_server: str):
        async with HttpClient(timeout=0.1) as client:
            with pytest.raises(TimeoutError):
                await client.get(URL(f"{target_server}/delay?delay=1.0"))

    async def test_connection_refused_raises_transport_error(self, closed_port_url: str):
        async with HttpClient(timeout=2.0) as client:
            with pytest.raises(TRANSPORT_ERRORS):
                await client.get(URL(closed_port_url))

    async def test_requires_context_manager(self):
        client = HttpClient()
        with pytest.raises(RuntimeError, match="async context manager"):
            await client.get(URL("http://localhost/"))

    async def test_session_closed_on_exit(self):
        client = HttpClient()
        async with client:
            assert client._session is not None
            session = client._session
        assert client._session is None
        assert session.closed

    def test_transport_errors_cover_client_errors(self):
        assert issubclass(aiohttp.ClientConnectorError, TRANSPORT_ERRORS)
        assert issubclass(aiohttp.ServerTimeoutError, TRANSPORT_ERRORS)
