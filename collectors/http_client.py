"""HTTP client wrapper for job-source APIs."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.errors import RateLimited, SourceError

logger = structlog.get_logger()


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header (delta-seconds or HTTP date)."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0.0, (when - datetime.now(UTC)).total_seconds())


class HttpClient:
    """Async JSON client with network-error retries.

    Status handling is mapped onto the pipeline taxonomy: 429 becomes
    RateLimited, every other non-2xx or undecodable body becomes SourceError.
    Budget and rate-limit retries live in the governor and RetryPolicy.
    """

    def __init__(
        self,
        timeout: float = 30,
        max_retries: int = 3,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent or "JobMatch/1.0 (ingestion pipeline)"
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_json(
        self,
        source: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET ``url`` and decode the JSON body.

        Raises:
            RateLimited: on HTTP 429.
            SourceError: on network failure, other non-2xx, or bad JSON.
        """
        try:
            response = await self._get_with_retry(url, params, headers)
        except httpx.HTTPError as e:
            raise SourceError(source, f"request failed: {e}") from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("retry-after"))
            logger.warning("Source rate limited", source=source, retry_after=retry_after)
            raise RateLimited(source, retry_after=retry_after)
        if not response.is_success:
            raise SourceError(
                source,
                f"HTTP {response.status_code} from {response.request.url.host}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise SourceError(source, f"invalid JSON: {e}", status_code=response.status_code) from e

    async def _get_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        """Internal GET with retry on timeouts and connection errors."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        async def _do_get() -> httpx.Response:
            return await self._client.get(url, params=params, headers=headers)  # type: ignore

        return await _do_get()
