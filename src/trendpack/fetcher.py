"""HTML fetcher built on httpx.

Every outbound request carries the configured browser user agent, a hard
timeout enforced with ``asyncio.wait_for`` and bounded exponential-backoff
retry for retryable failures.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from .config import settings
from .errors import FetchTimeoutError, NetworkError, error_for_status
from .retry import retry_with_backoff

logger = logging.getLogger(__name__)


class HttpFetcher:
    """Fetches HTML pages with retry and timeout."""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.user_agent = user_agent or settings.user_agent
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.retry_delay = settings.retry_delay if retry_delay is None else retry_delay
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7",
        }

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers,
                follow_redirects=True,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _get_once(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        client = self._ensure_client()
        try:
            response = await asyncio.wait_for(client.get(url, params=params), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise FetchTimeoutError(f"Request timeout after {self.timeout}s: {url}")
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Request timeout: {url} ({e})") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error fetching {url}: {e!r}") from e

        if response.status_code >= 400:
            raise error_for_status(response.status_code, url)

        return response.text

    async def fetch_html(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        """Fetch a page and return its body text."""
        logger.debug(f"GET {url} params={params}")
        return await retry_with_backoff(
            lambda: self._get_once(url, params),
            max_retries=self.max_retries,
            initial_delay=self.retry_delay,
            sleep=self._sleep,
        )


# Global fetcher instance for reuse
_fetcher: Optional[HttpFetcher] = None


async def get_fetcher() -> HttpFetcher:
    """Get or create the global fetcher instance."""
    global _fetcher
    if _fetcher is None:
        _fetcher = HttpFetcher()
    return _fetcher


async def close_fetcher() -> None:
    """Close the global fetcher."""
    global _fetcher
    if _fetcher:
        await _fetcher.close()
        _fetcher = None
