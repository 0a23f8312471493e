"""Tests for streaming archive downloads."""

import httpx
import pytest

from strand.core.fetcher import ArchiveFetcher
from strand.lib.errors import FetchFailed


async def _collect(fetcher: ArchiveFetcher, url: str) -> bytes:
    async with fetcher.fetch(url) as stream:
        return b"".join([chunk async for chunk in stream])


class TestArchiveFetcher:
    @pytest.mark.asyncio
    async def test_streams_body_in_chunks(self):
        body = b"x" * 10_000

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=body)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = ArchiveFetcher(client, chunk_size=1024)
            async with fetcher.fetch("https://example.com/a.tar.gz") as stream:
                chunks = [chunk async for chunk in stream]

        assert b"".join(chunks) == body
        assert max(len(c) for c in chunks) <= 1024

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "github.com":
                return httpx.Response(
                    302, headers={"Location": "https://codeload.github.com/o/r/tar.gz/main"}
                )
            return httpx.Response(200, content=b"archive")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            data = await _collect(ArchiveFetcher(client), "https://github.com/o/r/archive/main.tar.gz")

        assert data == b"archive"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 301])
    async def test_non_success_status_fails(self, status):
        def handler(request: httpx.Request) -> httpx.Response:
            # A redirect without Location cannot be followed
            return httpx.Response(status)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(FetchFailed, match=f"HTTP {status}") as exc_info:
                await _collect(ArchiveFetcher(client), "https://example.com/a.tar.gz")

        assert exc_info.value.url == "https://example.com/a.tar.gz"

    @pytest.mark.asyncio
    async def test_connect_error_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(FetchFailed, match="could not connect"):
                await _collect(ArchiveFetcher(client), "https://unreachable.invalid/a.tar.gz")

    @pytest.mark.asyncio
    async def test_timeout_fails(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(FetchFailed, match="timed out"):
                await _collect(ArchiveFetcher(client), "https://example.com/a.tar.gz")

    @pytest.mark.asyncio
    async def test_error_while_reading_body_fails(self):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"partial"
                raise httpx.RemoteProtocolError("connection reset")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=BrokenStream())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(FetchFailed, match="connection reset"):
                await _collect(ArchiveFetcher(client), "https://example.com/a.tar.gz")
