"""
Streaming archive downloads over HTTP.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from strand.lib.errors import FetchFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class ArchiveFetcher:
    """Downloads archives through a shared httpx client.

    The body is handed out chunk by chunk so the caller decides where it
    goes; nothing here holds a whole archive in memory.
    """

    def __init__(self, client: httpx.AsyncClient, chunk_size: int = CHUNK_SIZE):
        self._client = client
        self._chunk_size = chunk_size

    @asynccontextmanager
    async def fetch(self, url: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a streaming GET for ``url`` and yield its body iterator.

        Raises:
            FetchFailed: On a non-2xx final status or any transport error,
                including one hit while the body is being read.
        """
        try:
            async with self._client.stream("GET", url, follow_redirects=True) as response:
                if not response.is_success:
                    raise FetchFailed(
                        url, f"HTTP {response.status_code} {response.reason_phrase}".strip()
                    )
                logger.debug(f"Downloading {response.url}")
                yield self._iter_body(response, url)
        except httpx.HTTPError as e:
            raise FetchFailed(url, _describe_http_error(e)) from e

    async def _iter_body(self, response: httpx.Response, url: str) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes(self._chunk_size):
                yield chunk
        except httpx.HTTPError as e:
            raise FetchFailed(url, _describe_http_error(e)) from e


def _describe_http_error(e: httpx.HTTPError) -> str:
    if isinstance(e, httpx.TimeoutException):
        return "timed out"
    if isinstance(e, httpx.ConnectError):
        return f"could not connect: {e}" if str(e) else "could not connect"
    return f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
