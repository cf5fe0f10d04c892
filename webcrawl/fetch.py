from __future__ import annotations

import asyncio
import random
from typing import Optional

import httpx
from loguru import logger

from webcrawl.config import settings
from webcrawl.errors import FetchError, FetchTimeout
from webcrawl.models import FetchResponse

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class BaseFetcher:
    """Fetch capability consumed by the crawl engine.

    Implementations return the response for any HTTP status and raise
    FetchError (or FetchTimeout) only when no response could be obtained.
    """

    async def fetch(
        self,
        url: str,
        *,
        timeout_ms: int,
        user_agent: str,
        follow_redirects: bool = True,
    ) -> FetchResponse:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class HttpFetcher(BaseFetcher):
    """httpx-backed fetcher adding retries with exponential backoff and jitter."""

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: Optional[int] = None,
        backoff_base_ms: Optional[int] = None,
        backoff_max_ms: Optional[int] = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.max_attempts = max(1, max_attempts or settings.retry_max_attempts)
        self.backoff_base_ms = backoff_base_ms if backoff_base_ms is not None else settings.backoff_base_ms
        self.backoff_max_ms = backoff_max_ms if backoff_max_ms is not None else settings.backoff_max_ms

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _compute_backoff(self, attempt: int) -> float:
        base = self.backoff_base_ms / 1000.0
        cap = self.backoff_max_ms / 1000.0
        exp = min(cap, base * (2 ** (attempt - 1)))
        jitter = random.uniform(0, exp / 2)
        return exp + jitter

    def _retry_after(self, resp: httpx.Response) -> Optional[float]:
        ra = resp.headers.get("Retry-After")
        if not ra:
            return None
        try:
            return min(float(ra), self.backoff_max_ms / 1000.0)
        except ValueError:
            return None

    async def fetch(
        self,
        url: str,
        *,
        timeout_ms: int,
        user_agent: str,
        follow_redirects: bool = True,
    ) -> FetchResponse:
        client = self._get_client()
        headers = {"User-Agent": user_agent}
        timeout = timeout_ms / 1000.0
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = await client.get(url, headers=headers, timeout=timeout, follow_redirects=follow_redirects)
            except httpx.TimeoutException as e:
                if attempt >= self.max_attempts:
                    raise FetchTimeout(f"Timed out fetching {url}", url=url) from e
                logger.warning(f"Timeout fetching {url} (attempt {attempt}/{self.max_attempts})")
            except (httpx.ConnectError, httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError) as e:
                if attempt >= self.max_attempts:
                    raise FetchError(f"Network error fetching {url}: {e}", url=url) from e
                logger.warning(f"Network error fetching {url} (attempt {attempt}/{self.max_attempts}): {e}")
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise FetchError(f"Error fetching {url}: {e}", url=url) from e
            else:
                if resp.status_code in RETRYABLE_STATUS and attempt < self.max_attempts:
                    delay = self._retry_after(resp)
                    logger.info(f"Retryable status {resp.status_code} from {url} (attempt {attempt}/{self.max_attempts})")
                    await asyncio.sleep(delay if delay is not None else self._compute_backoff(attempt))
                    continue
                return FetchResponse(
                    url=str(resp.url),
                    status_code=resp.status_code,
                    reason=resp.reason_phrase,
                    headers=dict(resp.headers),
                    body=resp.text,
                )
            await asyncio.sleep(self._compute_backoff(attempt))
        # Unreachable: the last attempt either returns or raises
        raise FetchError(f"Giving up on {url}", url=url)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
