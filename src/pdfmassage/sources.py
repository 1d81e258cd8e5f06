"""Input normalization for pdfmassage.

A document source is one of:

- a buffer (bytes, bytearray, memoryview)
- a stream (binary file-like object, or async iterable of bytes chunks)
- a locator (URL string, or a mapping of request parameters with a ``url``)

Buffers and streams are passed through; locators are fetched over HTTP.
Every way a locator can fail (bad syntax, DNS, timeout, non-2xx) is reported
as InvalidLocatorError. The transport error is chained and logged.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from typing import IO, Any, Union
from urllib.parse import urlparse

import httpx

from pdfmassage.constants import DEFAULT_CHUNK_SIZE, DEFAULT_FETCH_TIMEOUT
from pdfmassage.exceptions import InvalidLocatorError
from pdfmassage.logging_config import get_logger

logger = get_logger(__name__)

Buffer = Union[bytes, bytearray, memoryview]
Stream = Union[IO[bytes], AsyncIterable[bytes]]
Locator = Union[str, Mapping[str, Any]]
Source = Union[Buffer, Stream, Locator]


def is_buffer(source: Any) -> bool:
    return isinstance(source, (bytes, bytearray, memoryview))


def is_stream(source: Any) -> bool:
    """True for async iterables of chunks and for readable file-like objects."""
    if isinstance(source, (str, bytes, bytearray, memoryview, Mapping)):
        return False
    return hasattr(source, "__aiter__") or callable(getattr(source, "read", None))


def validate_url(url: Any) -> str:
    """Check that ``url`` is a string with a URL scheme.

    No network access happens here.

    Raises:
        InvalidLocatorError: Not a non-empty string, or no scheme
    """
    if not url or not isinstance(url, str):
        raise InvalidLocatorError(context={"url": url})
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidLocatorError(context={"url": url}) from e
    if not parsed.scheme:
        raise InvalidLocatorError(context={"url": url})
    return url


class HttpFetcher:
    """Transport used to resolve locators.

    Errors are raised as httpx exceptions; callers decide how to report them.

    Args:
        timeout: Default request timeout in seconds
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.timeout = timeout
        self.transport = transport
        self.chunk_size = chunk_size

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout if timeout is not None else self.timeout,
            transport=self.transport,
            follow_redirects=True,
        )

    async def fetch(
        self,
        url: str,
        method: str = "GET",
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> bytes:
        """Download ``url`` and return the body. Non-2xx raises HTTPStatusError."""
        async with self._client(timeout) as client:
            resp = await client.request(method, url, headers=headers)
            resp.raise_for_status()
            return resp.content

    async def head(self, url: str) -> int:
        """Return the status code of a HEAD request."""
        async with self._client() as client:
            resp = await client.head(url)
            return resp.status_code

    async def iter_bytes(self, url: str) -> AsyncIterator[bytes]:
        """Stream the body of a GET request in chunks."""
        async with self._client() as client:
            async with client.stream("GET", url) as resp:
                resp.raise_for_status()
                async for chunk in resp.aiter_bytes(self.chunk_size):
                    yield chunk


def _request_params(locator: Locator) -> dict[str, Any]:
    if isinstance(locator, str):
        return {"url": locator}
    if isinstance(locator, Mapping):
        if "url" not in locator:
            raise InvalidLocatorError(context={"url": None})
        return dict(locator)
    raise InvalidLocatorError(context={"type": type(locator).__name__})


async def get_buffer(
    source: Any,
    fetcher: HttpFetcher | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
) -> bytes | Stream:
    """Resolve a source to bytes or a stream.

    Args:
        source: Buffer, stream, URL string or request mapping
        fetcher: Transport for locators (default HttpFetcher)
        timeout: Timeout in seconds used when the request does not set one

    Returns:
        The bytes (buffers and downloads) or the stream unchanged

    Raises:
        InvalidLocatorError: Invalid URL, failed fetch, or unsupported type
    """
    if isinstance(source, bytes):
        return source
    if is_buffer(source):
        return bytes(source)
    if is_stream(source):
        return source

    params = _request_params(source)
    url = validate_url(params["url"])
    fetcher = fetcher or HttpFetcher(timeout=timeout)

    try:
        body = await fetcher.fetch(
            url,
            method=params.get("method", "GET"),
            timeout=params.get("timeout", timeout),
            headers=params.get("headers"),
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("Could not fetch %s: %s", url, e)
        raise InvalidLocatorError(context={"url": url, "reason": type(e).__name__}) from e

    logger.debug("Fetched %d bytes from %s", len(body), url)
    return body


async def _guarded(url: str, chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        async for chunk in chunks:
            yield chunk
    except httpx.HTTPError as e:
        logger.warning("Stream from %s failed: %s", url, e)
        raise InvalidLocatorError(context={"url": url, "reason": type(e).__name__}) from e


async def open_stream(url: Any, fetcher: HttpFetcher | None = None) -> AsyncIterator[bytes]:
    """Check a URL with HEAD, then return a lazy chunk stream of its body.

    Raises:
        InvalidLocatorError: Invalid URL, transport error or HEAD status != 200
    """
    url = validate_url(url)
    fetcher = fetcher or HttpFetcher()

    try:
        status = await fetcher.head(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning("HEAD %s failed: %s", url, e)
        raise InvalidLocatorError(context={"url": url, "reason": type(e).__name__}) from e

    if status != 200:
        raise InvalidLocatorError(context={"url": url, "status": status})

    return _guarded(url, fetcher.iter_bytes(url))


async def iter_chunks(source: Stream, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Read any stream as an async iterator of bytes chunks.

    Blocking file-like objects are read off the event loop.
    """
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield bytes(chunk)
        return

    while True:
        chunk = await asyncio.to_thread(source.read, chunk_size)
        if not chunk:
            break
        if isinstance(chunk, str):
            raise TypeError("stream must be opened in binary mode")
        yield chunk
