"""
Sync session: wires the REST client, the job store and the event stream.

One session per logged-in dashboard. The store is the read side handed to
consumers; the session owns the refresh and job-control paths around it.
"""
from typing import Iterable, Optional

import httpx

from ..client.api import CrawlApiClient
from ..core.exceptions import DecodeError
from ..core.logging import logger
from ..models.job import StoreSnapshot
from .store import JobStore
from .stream import StreamConnectionManager


FETCH_FAILED_MESSAGE = "Failed to load crawl history."


class CrawlSyncSession:
    """Keeps a JobStore consistent with the crawl API via bulk fetch and stream."""

    def __init__(
        self,
        store: JobStore,
        api: CrawlApiClient,
        stream: StreamConnectionManager,
    ):
        self.store = store
        self.api = api
        self.stream = stream
        self.is_loading = False
        self.last_error: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "CrawlSyncSession":
        """Build a session whose parts all read from ``settings``."""
        store = JobStore()
        api = CrawlApiClient()
        stream = StreamConnectionManager(on_event=store.upsert)
        return cls(store, api, stream)

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()

    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot()

    async def start(self):
        """Open the event stream, then load the current job list."""
        self.stream.start()
        await self.refresh()

    async def stop(self):
        """Stop the stream and release the HTTP client."""
        await self.stream.stop()
        await self.api.close()

    async def refresh(self) -> bool:
        """
        Bulk-fetch all jobs and replace the table.

        On failure the store keeps its last snapshot, ``last_error`` is set
        and False is returned.
        """
        self.is_loading = True
        try:
            raw_records = await self.api.list_crawls()
        except (httpx.HTTPError, DecodeError) as e:
            logger.error(f"Failed to fetch crawls: {e}")
            self.last_error = FETCH_FAILED_MESSAGE
            return False
        finally:
            self.is_loading = False

        self.store.replace_all(raw_records)
        self.last_error = None
        return True

    async def submit(self, url: str):
        """Start a crawl; the new job shows up through the stream."""
        await self.api.start_crawl(url)

    async def rerun(self, crawl_id: int):
        """Rerun a crawl; status changes show up through the stream."""
        await self.api.rerun_crawl(crawl_id)

    async def delete(self, crawl_ids: Iterable[int]) -> int:
        """
        Delete crawls remotely, then drop them locally.

        The local removal happens only after the server acknowledges.
        Returns the number of records removed from the store.
        """
        ids = set(crawl_ids)
        if not ids:
            return 0

        if len(ids) == 1:
            await self.api.delete_crawl(next(iter(ids)))
        else:
            await self.api.delete_crawls(ids)

        return self.store.remove(ids)
