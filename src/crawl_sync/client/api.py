"""
REST client for the crawl API.

Provides the bulk fetch that seeds the job store and the job-control calls
(start, rerun, delete) the UI issues. Control call responses are not
applied locally; the authoritative update arrives on the event stream.
"""
from typing import Any, Iterable, List, Optional

import httpx

from ..core.config import settings
from ..core.exceptions import DecodeError
from ..core.logging import logger
from ..utils.retry import RetryConfig


class CrawlApiClient:
    """Async httpx client for /crawls endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[dict] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT if timeout is None else timeout
        self.retry_config = retry_config or RetryConfig(
            max_attempts=settings.FETCH_MAX_ATTEMPTS,
            min_wait=settings.FETCH_MIN_WAIT,
            max_wait=settings.FETCH_MAX_WAIT,
            retry_exceptions=(httpx.TransportError,),
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        await self._client.aclose()

    async def list_crawls(self) -> List[Any]:
        """
        Fetch every crawl job for the current user.

        Transport errors are retried per ``retry_config`` and then re-raised.

        Raises:
            DecodeError: body is not a JSON array
            httpx.HTTPStatusError: non-2xx response
        """
        async for attempt in self.retry_config.async_retrying():
            with attempt:
                response = await self._client.get("/crawls")

        response.raise_for_status()

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"crawl list body is not JSON: {e}", payload=response.text) from e

        if not isinstance(payload, list):
            raise DecodeError(
                f"expected a JSON array of crawls, got {type(payload).__name__}",
                payload=response.text
            )

        logger.info(f"Fetched {len(payload)} crawl(s) from {self.base_url}")
        return payload

    async def start_crawl(self, url: str) -> Any:
        """Submit a new URL for crawling."""
        response = await self._client.post("/crawls", json={"url": url})
        response.raise_for_status()
        logger.info(f"Crawl submitted for {url}")
        return self._json_or_none(response)

    async def rerun_crawl(self, crawl_id: int) -> Any:
        """Queue an existing crawl to run again."""
        response = await self._client.post(f"/crawls/{crawl_id}/rerun")
        response.raise_for_status()
        logger.info(f"Crawl {crawl_id} queued for rerun")
        return self._json_or_none(response)

    async def delete_crawl(self, crawl_id: int) -> None:
        """Delete one crawl."""
        response = await self._client.delete(f"/crawls/{crawl_id}")
        response.raise_for_status()
        logger.info(f"Crawl {crawl_id} deleted")

    async def delete_crawls(self, crawl_ids: Iterable[int]) -> None:
        """Delete several crawls in one request."""
        ids = sorted(set(crawl_ids))
        response = await self._client.request("DELETE", "/crawls/bulk", json={"ids": ids})
        response.raise_for_status()
        logger.info(f"Deleted {len(ids)} crawl(s)")

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
