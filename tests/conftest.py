"""Pytest fixtures for crawl sync tests."""

import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from crawl_sync.client.api import CrawlApiClient
from crawl_sync.sync.store import JobStore
from crawl_sync.utils.retry import RetryConfig


API_BASE = "http://testserver/api/v1"


class FakeChannel:
    """In-memory stand-in for a websocket connection."""

    _CLOSE = object()

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self.queue.get()
        if frame is self._CLOSE:
            raise StopAsyncIteration
        if isinstance(frame, Exception):
            raise frame
        return frame

    def send(self, frame: Any):
        """Queue a frame as if the server pushed it."""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self.queue.put_nowait(frame)

    def server_close(self):
        """End the stream cleanly from the server side."""
        self.queue.put_nowait(self._CLOSE)

    def drop(self, error: Exception = None):
        """Break the stream with a transport error."""
        self.queue.put_nowait(error or ConnectionResetError("connection reset"))

    async def close(self):
        self.closed = True
        self.queue.put_nowait(self._CLOSE)


class FakeConnector:
    """Connector handing out FakeChannels, optionally failing first."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.channels: List[FakeChannel] = []

    async def __call__(self, url: str) -> FakeChannel:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionRefusedError("connection refused")
        channel = FakeChannel()
        self.channels.append(channel)
        return channel

    @property
    def latest(self) -> FakeChannel:
        return self.channels[-1]


@pytest.fixture
def store() -> JobStore:
    """Fresh job store with call-order conflict resolution."""
    return JobStore(resolve_conflicts_by_timestamp=False)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def eventually() -> Callable:
    """Poll a predicate until it holds or fail after a timeout."""

    async def wait(predicate: Callable[[], bool], timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("condition not met before timeout")
            await asyncio.sleep(0.005)

    return wait


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Retry config without real waiting."""
    return RetryConfig(
        max_attempts=3,
        min_wait=0,
        max_wait=0,
        retry_exceptions=(httpx.TransportError,),
    )


@pytest.fixture
def make_api(fast_retry) -> Callable[..., CrawlApiClient]:
    """Build a CrawlApiClient whose requests go to ``handler``."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> CrawlApiClient:
        return CrawlApiClient(
            base_url=API_BASE,
            retry_config=fast_retry,
            transport=httpx.MockTransport(handler),
        )

    return build


@pytest.fixture
def make_connector() -> Callable[..., FakeConnector]:
    """Build a FakeConnector that fails its first ``failures`` attempts."""
    return FakeConnector
