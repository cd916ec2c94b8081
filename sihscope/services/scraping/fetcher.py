"""HTTP client for SIH problem statement listing pages.

Rate Limiting
-------------
The listing site is a public government portal, so requests are paced:
  - Requests are serialised behind a lock.
  - At least ``request_delay`` seconds separate successive requests.
  - Browser-like headers are sent; the site rejects bare clients.
  - Transport errors and 5xx responses are retried with exponential
    backoff, up to ``max_retries`` attempts in total.
"""

from __future__ import annotations

import asyncio
import time

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sihscope.services.scraping.config import ScraperConfig
from sihscope.services.scraping.errors import FetchError

logger = structlog.get_logger(__name__)


class _RetryableStatus(Exception):
    """Raised internally for 5xx responses so tenacity retries them."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


def build_request_headers(user_agent: str) -> dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


class ListingFetcher:
    """Fetches listing pages and returns their HTML text.

    Parameters
    ----------
    config:
        Pacing, timeout and retry settings.
    client:
        Optional pre-built :class:`httpx.AsyncClient`.  Tests pass one
        backed by :class:`httpx.MockTransport`; when omitted the fetcher
        creates and owns its own client.
    """

    def __init__(
        self,
        config: ScraperConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(
            timeout=config.request_timeout,
            headers=build_request_headers(config.user_agent),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
        )
        self._lock = asyncio.Lock()
        self._last_request_time: float = 0.0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def _throttled_get(self, url: str) -> httpx.Response:
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._config.request_delay:
                await asyncio.sleep(self._config.request_delay - elapsed)

            self._last_request_time = time.monotonic()
            return await self._client.get(
                url,
                headers=build_request_headers(self._config.user_agent),
                timeout=self._config.request_timeout,
            )

    async def _get_once(self, url: str) -> str:
        response = await self._throttled_get(url)
        if response.status_code >= 500:
            raise _RetryableStatus(response.status_code)
        if response.status_code >= 400:
            raise FetchError(url, f"HTTP {response.status_code}", response.status_code)
        return response.text

    async def fetch(self, url: str) -> str:
        """GET *url* and return the body text.

        Raises
        ------
        FetchError
            If the request still fails after all retry attempts, or the
            server answers with a 4xx status (not retried).  Any other
            httpx error, such as a redirect loop or an undecodable body,
            is reported the same way without a retry.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((httpx.TransportError, _RetryableStatus)),
            stop=stop_after_attempt(self._config.max_retries),
            wait=wait_exponential(
                multiplier=self._config.retry_backoff,
                max=8 * self._config.retry_backoff,
            ),
            reraise=True,
        )

        logger.debug("fetcher.request", url=url)
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "fetcher.retry",
                            url=url,
                            attempt=attempt.retry_state.attempt_number,
                        )
                    html = await self._get_once(url)
        except _RetryableStatus as exc:
            raise FetchError(url, str(exc), exc.status_code) from exc
        except httpx.TimeoutException as exc:
            raise FetchError(url, "timeout") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"{type(exc).__name__}: {exc}") from exc
        except RetryError as exc:
            raise FetchError(url, "retries exhausted") from exc

        logger.debug("fetcher.response", url=url, length=len(html))
        return html
