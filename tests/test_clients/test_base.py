"""Tests for base async client."""

import asyncio
import json

import httpx
import pytest

from autodata.clients.base import APIProviderError, BaseAsyncClient, RateLimiter

BASE = "https://api.example.com"


def _client(**kwargs) -> BaseAsyncClient:
    """Client with zero backoff so retry tests run instantly."""
    kwargs.setdefault("backoff", 0.0)
    kwargs.setdefault("rate_limit", 100)
    return BaseAsyncClient(base_url=BASE, **kwargs)


class TestRateLimiter:
    """Tests for token bucket rate limiter."""

    def test_init_without_event_loop(self):
        limiter = RateLimiter(rate=10)
        assert limiter.rate == 10
        assert limiter.tokens == 10
        assert limiter.updated_at is None

    @pytest.mark.asyncio
    async def test_allows_burst_up_to_rate(self):
        limiter = RateLimiter(rate=10)
        loop = asyncio.get_running_loop()

        start = loop.time()
        for _ in range(5):
            await limiter.acquire()

        assert loop.time() - start < 0.1

    @pytest.mark.asyncio
    async def test_blocks_when_over_limit(self):
        limiter = RateLimiter(rate=2)
        loop = asyncio.get_running_loop()

        await limiter.acquire()
        await limiter.acquire()
        start = loop.time()
        await limiter.acquire()

        assert loop.time() - start > 0.3


class TestBaseAsyncClient:
    """Request lifecycle and error mapping."""

    @pytest.mark.asyncio
    async def test_context_manager_lifecycle(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(
            return_value=httpx.Response(200, json={"status": "ok"})
        )

        async with _client(headers={"x-api-key": "k"}) as client:
            assert client._client is not None
            assert await client.get("/test") == {"status": "ok"}

        assert client._client is None

    @pytest.mark.asyncio
    async def test_raises_if_used_without_context_manager(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            await _client().get("/test")

    @pytest.mark.asyncio
    async def test_request_adds_leading_slash(self, respx_mock):
        respx_mock.get(f"{BASE}/test").mock(return_value=httpx.Response(200, json={"a": 1}))

        async with _client() as client:
            assert await client.get("test") == {"a": 1}

    @pytest.mark.asyncio
    async def test_default_headers_sent(self, respx_mock):
        route = respx_mock.post(f"{BASE}/vehicles", headers={"x-api-key": "secret"}).mock(
            return_value=httpx.Response(200, json={"ok": True})
        )

        async with _client(headers={"x-api-key": "secret"}) as client:
            await client.post("/vehicles", json_data={"registrationNumber": "AB12CDE"})

        assert route.called
        assert json.loads(route.calls.last.request.content) == {"registrationNumber": "AB12CDE"}

    @pytest.mark.asyncio
    async def test_handles_http_errors(self, respx_mock):
        respx_mock.get(f"{BASE}/error").mock(return_value=httpx.Response(404, text="Not Found"))

        async with _client() as client:
            with pytest.raises(APIProviderError) as exc_info:
                await client.get("/error")

        assert exc_info.value.status_code == 404
        assert exc_info.value.is_not_found
        assert "Not Found" in exc_info.value.response_body

    @pytest.mark.asyncio
    async def test_handles_invalid_json(self, respx_mock):
        respx_mock.get(f"{BASE}/invalid").mock(return_value=httpx.Response(200, text="not json"))

        async with _client() as client:
            with pytest.raises(APIProviderError, match="Invalid JSON"):
                await client.get("/invalid")


class TestRetryBehavior:
    """Bounded retries on transient failures only."""

    @pytest.mark.asyncio
    async def test_retries_on_429(self, respx_mock):
        route = respx_mock.get(f"{BASE}/rate-limited")
        route.side_effect = [
            httpx.Response(429, text="Too Many Requests"),
            httpx.Response(200, json={"ok": True}),
        ]

        async with _client() as client:
            assert await client.get("/rate-limited") == {"ok": True}

        assert route.call_count == 2

    @pytest.mark.asyncio
    async def test_no_retry_on_404(self, respx_mock):
        route = respx_mock.get(f"{BASE}/missing").mock(
            return_value=httpx.Response(404, text="Not Found")
        )

        async with _client() as client:
            with pytest.raises(APIProviderError):
                await client.get("/missing")

        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_exhausts_retries(self, respx_mock):
        route = respx_mock.get(f"{BASE}/always-fail").mock(
            return_value=httpx.Response(503, text="Down")
        )

        async with _client(max_retries=2) as client:
            with pytest.raises(APIProviderError) as exc_info:
                await client.get("/always-fail")

        assert exc_info.value.status_code == 503
        # 1 initial + 2 retries
        assert route.call_count == 3

    @pytest.mark.asyncio
    async def test_retries_on_timeout(self, respx_mock):
        route = respx_mock.get(f"{BASE}/slow")
        route.side_effect = [
            httpx.ReadTimeout("Connection timed out"),
            httpx.Response(200, json={"slow_but_ok": True}),
        ]

        async with _client() as client:
            assert await client.get("/slow") == {"slow_but_ok": True}

    @pytest.mark.asyncio
    async def test_network_error_after_retries(self, respx_mock):
        route = respx_mock.get(f"{BASE}/down")
        route.side_effect = httpx.ConnectError("refused")

        async with _client(max_retries=1) as client:
            with pytest.raises(APIProviderError, match="Network error") as exc_info:
                await client.get("/down")

        assert exc_info.value.status_code is None
        assert route.call_count == 2

    def test_backoff_doubles(self):
        client = BaseAsyncClient(base_url=BASE, backoff=0.5)
        assert [client._backoff_for(n) for n in range(3)] == [0.5, 1.0, 2.0]
