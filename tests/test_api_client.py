"""Unit tests for the crawl REST client."""

import json

import httpx
import pytest

from crawl_sync.core.exceptions import DecodeError


class TestListCrawls:
    """Bulk fetch."""

    @pytest.mark.asyncio
    async def test_returns_raw_rows(self, make_api):
        rows = [{"ID": 1, "Status": "PENDING"}, {"id": 2, "status": "COMPLETED"}]
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=rows)

        async with make_api(handler) as api:
            result = await api.list_crawls()

        assert result == rows
        assert seen == [("GET", "/api/v1/crawls")]

    @pytest.mark.asyncio
    async def test_non_json_body(self, make_api):
        async with make_api(lambda request: httpx.Response(200, text="<html>oops</html>")) as api:
            with pytest.raises(DecodeError):
                await api.list_crawls()

    @pytest.mark.asyncio
    async def test_non_array_body(self, make_api):
        async with make_api(lambda request: httpx.Response(200, json={"error": "nope"})) as api:
            with pytest.raises(DecodeError):
                await api.list_crawls()

    @pytest.mark.asyncio
    async def test_http_error_status(self, make_api):
        async with make_api(lambda request: httpx.Response(401, json={"error": "unauthorized"})) as api:
            with pytest.raises(httpx.HTTPStatusError):
                await api.list_crawls()

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self, make_api):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=[])

        async with make_api(handler) as api:
            assert await api.list_crawls() == []

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_api):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with make_api(handler) as api:
            with pytest.raises(httpx.ConnectError):
                await api.list_crawls()

        assert len(attempts) == 3


class TestJobControl:
    """Outbound job-control calls."""

    @pytest.mark.asyncio
    async def test_start_crawl(self, make_api):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json={"ID": 10, "Status": "PENDING"})

        async with make_api(handler) as api:
            await api.start_crawl("https://example.com")

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/api/v1/crawls"
        assert json.loads(requests[0].content) == {"url": "https://example.com"}

    @pytest.mark.asyncio
    async def test_rerun_crawl(self, make_api):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202)

        async with make_api(handler) as api:
            assert await api.rerun_crawl(4) is None

        assert (requests[0].method, requests[0].url.path) == ("POST", "/api/v1/crawls/4/rerun")

    @pytest.mark.asyncio
    async def test_delete_crawl(self, make_api):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        async with make_api(handler) as api:
            await api.delete_crawl(4)

        assert (requests[0].method, requests[0].url.path) == ("DELETE", "/api/v1/crawls/4")

    @pytest.mark.asyncio
    async def test_delete_crawls_sends_ids(self, make_api):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"message": "deleted"})

        async with make_api(handler) as api:
            await api.delete_crawls([3, 1, 3])

        assert (requests[0].method, requests[0].url.path) == ("DELETE", "/api/v1/crawls/bulk")
        assert json.loads(requests[0].content) == {"ids": [1, 3]}

    @pytest.mark.asyncio
    async def test_control_errors_propagate(self, make_api):
        async with make_api(lambda request: httpx.Response(500)) as api:
            with pytest.raises(httpx.HTTPStatusError):
                await api.rerun_crawl(1)
