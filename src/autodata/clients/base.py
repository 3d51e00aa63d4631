"""Base async HTTP client for vehicle data providers.

Every provider client inherits from this base so transport behaviour is the
same everywhere:
- Async/await over a pooled ``httpx.AsyncClient``
- Token-bucket rate limiting per client
- Bounded retries with exponential backoff on transient failures
- One exception type (``APIProviderError``) for every failure

Usage:
    class MyVehicleClient(BaseAsyncClient):
        def __init__(self, api_key: str, rate_limit: int = 5):
            super().__init__(
                base_url="https://api.example.com",
                headers={"x-api-key": api_key},
                rate_limit=rate_limit,
            )

        async def get_vehicle(self, vrm: str) -> dict:
            return await self.post("/vehicles", json_data={"registrationNumber": vrm})
"""

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Retry configuration
_RETRYABLE_STATUS_CODES = {429, 502, 503, 504}
_MAX_RETRIES = 2
_BASE_BACKOFF = 1.0  # seconds
_ERROR_BODY_LIMIT = 500


class RateLimiter:
    """Token bucket rate limiter for async operations.

    Args:
        rate: Maximum requests per second
    """

    def __init__(self, rate: int) -> None:
        self.rate = rate
        self.tokens = float(rate)
        self.updated_at: float | None = None
        self._lock = asyncio.Lock()

    def _refill(self, now: float) -> None:
        if self.updated_at is None:
            self.updated_at = now
            return
        elapsed = now - self.updated_at
        self.tokens = min(float(self.rate), self.tokens + elapsed * self.rate)
        self.updated_at = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            self._refill(loop.time())
            while self.tokens < 1:
                await asyncio.sleep((1 - self.tokens) / self.rate)
                self._refill(loop.time())
            self.tokens -= 1


class APIProviderError(Exception):
    """Transport-level failure talking to a provider API.

    Attributes:
        status_code: HTTP status, None for timeouts and network errors
        response_body: First 500 characters of the error body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class BaseAsyncClient:
    """Base async HTTP client with rate limiting and retries.

    Args:
        base_url: Base URL for all API requests
        headers: Default headers for all requests
        rate_limit: Maximum requests per second (default: 5)
        timeout: Per-request timeout in seconds (default: 10)
        max_retries: Retries after the first attempt (default: 2)
        backoff: Base backoff in seconds, doubled per retry (default: 1.0)
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        rate_limit: int = 5,
        timeout: float = 10.0,
        max_retries: int = _MAX_RETRIES,
        backoff: float = _BASE_BACKOFF,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = headers or {}
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self._rate_limiter = RateLimiter(rate=rate_limit)
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "BaseAsyncClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _backoff_for(self, attempt: int) -> float:
        return self.backoff * (2 ** attempt)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request with rate limiting, retries and error mapping.

        Retries on 429/502/503/504, timeouts and network errors. Anything
        else fails on the first attempt.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (relative to base_url)
            params: Query parameters
            json_data: JSON body for POST requests

        Returns:
            Parsed JSON response as dictionary

        Raises:
            APIProviderError: If the request fails after all retries
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async with context manager.")

        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"

        attempts = self.max_retries + 1
        for attempt in range(attempts):
            await self._rate_limiter.acquire()
            logger.debug(
                "%s %s%s (attempt %d/%d)",
                method, self.base_url, endpoint, attempt + 1, attempts,
            )

            try:
                response = await self._client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    json=json_data,
                )
            except httpx.TimeoutException as e:
                error = APIProviderError(f"Request timeout: {e}")
            except httpx.NetworkError as e:
                error = APIProviderError(f"Network error: {e}")
            else:
                logger.debug("Response: %d for %s", response.status_code, endpoint)
                if response.status_code < 400:
                    return self._parse_json(response)

                error = APIProviderError(
                    message=f"API request failed: {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text[:_ERROR_BODY_LIMIT],
                )
                if response.status_code not in _RETRYABLE_STATUS_CODES:
                    logger.warning(
                        "API error: %d %s - %s",
                        response.status_code, endpoint, error.response_body,
                    )
                    raise error

            if attempt + 1 >= attempts:
                logger.warning("%s for %s after %d attempts", error, endpoint, attempts)
                raise error

            delay = self._backoff_for(attempt)
            logger.debug(
                "%s for %s, retrying in %.1fs (attempt %d/%d)",
                error, endpoint, delay, attempt + 1, attempts,
            )
            await asyncio.sleep(delay)

        raise APIProviderError("Request failed after retries")

    @staticmethod
    def _parse_json(response: httpx.Response) -> dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise APIProviderError(
                message=f"Invalid JSON response: {e}",
                status_code=response.status_code,
                response_body=response.text[:_ERROR_BODY_LIMIT],
            ) from e

    async def get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Convenience method for GET requests."""
        return await self._request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Convenience method for POST requests."""
        return await self._request("POST", endpoint, params=params, json_data=json_data)
