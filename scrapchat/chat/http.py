"""
HTTP session shared by the bootstrap, negotiation, long-poll and fetch steps.
"""

import json
import logging
import random
import string
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import aiohttp

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "accept": "*/*",
    "accept-language": "en-US,en;q=0.9",
    "cache-control": "no-cache",
    "origin": "https://www.youtube.com",
    "priority": "u=1, i",
    "pragma": "no-cache",
    "referer": "https://www.youtube.com/",
    "sec-ch-ua": "\"Chromium\";v=\"136\", \"Brave\";v=\"136\", \"Not.A/Brand\";v=\"99\"",
    "sec-ch-ua-arch": "\"arm\"",
    "sec-ch-ua-bitness": "\"64\"",
    "sec-ch-ua-full-version-list": "\"Chromium\";v=\"136.0.0.0\", \"Brave\";v=\"136.0.0.0\", \"Not.A/Brand\";v=\"99.0.0.0\"",
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-model": "\"\"",
    "sec-ch-ua-platform": "\"macOS\"",
    "sec-ch-ua-platform-version": "\"15.4.0\"",
    "sec-ch-ua-wow64": "?0",
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "sec-gpc": "1",
    "user-agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/136.0.0.0 Safari/537.36",
}

ZX_ALPHABET = string.ascii_lowercase + string.digits

# Longest silence tolerated on the long-poll before it is reopened
STREAM_READ_TIMEOUT_SEC = 300.0


def generate_zx(length: int = 16) -> str:
    """Random cache-busting request correlator."""
    return "".join(random.choices(ZX_ALPHABET, k=length))


class YouTubeHttp:
    """
    Thin wrapper around an aiohttp ClientSession.

    Adds browser-like headers and the cookie header to every request.
    Network errors are left to the caller, which wraps them into the
    exception type of its phase.
    """

    def __init__(
        self,
        cookie_header: str = "",
        timeout: float = 30.0,
        stream_read_timeout: float = STREAM_READ_TIMEOUT_SEC,
    ):
        """
        Initialize HTTP wrapper.

        Args:
            cookie_header: Value for the Cookie header ("" for none)
            timeout: Total timeout in seconds for non-streaming requests
            stream_read_timeout: Longest silence in seconds on a streaming read
        """
        self._cookie_header = cookie_header
        self._timeout = timeout
        self._stream_read_timeout = stream_read_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def cookie_header(self) -> str:
        return self._cookie_header

    @cookie_header.setter
    def cookie_header(self, value: str) -> None:
        self._cookie_header = value

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {}
        if self._cookie_header:
            headers["Cookie"] = self._cookie_header
        if extra:
            headers.update(extra)
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=DEFAULT_HEADERS,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def iter_chunks(
        self,
        url: str,
        chunk_size: int = 128 * 1024,
        max_bytes: Optional[int] = None,
    ) -> AsyncIterator[bytes]:
        """
        GET a URL and yield the body in chunks.

        Args:
            url: Page URL
            chunk_size: Maximum size of each chunk
            max_bytes: Stop after this many bytes (None for no limit)

        Yields:
            Body chunks
        """
        session = await self._get_session()
        async with session.get(url, headers=self._headers()) as response:
            response.raise_for_status()
            received = 0
            async for chunk in response.content.iter_chunked(chunk_size):
                if max_bytes is not None and received + len(chunk) > max_bytes:
                    chunk = chunk[: max_bytes - received]
                received += len(chunk)
                yield chunk
                if max_bytes is not None and received >= max_bytes:
                    logger.debug(f"Body of {url} truncated at {max_bytes} bytes")
                    break

    async def get_text(self, url: str, timeout: Optional[float] = None) -> str:
        """GET a URL and return the decoded body."""
        session = await self._get_session()
        request_timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None
        async with session.get(url, headers=self._headers(), timeout=request_timeout) as response:
            response.raise_for_status()
            return await response.text(errors="replace")

    async def post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        """POST a JSON payload and decode the JSON response."""
        session = await self._get_session()
        headers = self._headers({"content-type": "application/json"})
        async with session.post(url, data=json.dumps(payload), headers=headers) as response:
            response.raise_for_status()
            return await response.json(content_type=None)

    async def post_text(
        self,
        url: str,
        body: str,
        content_type: str,
        headers: Optional[Dict[str, str]] = None,
        max_bytes: Optional[int] = None,
    ) -> Tuple[int, str]:
        """
        POST a raw body.

        Args:
            url: Endpoint URL
            body: Request body
            content_type: Value of the content-type header
            headers: Extra headers
            max_bytes: Read at most this many bytes of the response

        Returns:
            Tuple of (status code, decoded body)
        """
        session = await self._get_session()
        request_headers = self._headers({"content-type": content_type})
        if headers:
            request_headers.update(headers)
        async with session.post(url, data=body.encode("utf-8"), headers=request_headers) as response:
            if max_bytes is None:
                data = await response.read()
            else:
                data = bytearray()
                async for chunk in response.content.iter_chunked(64 * 1024):
                    data.extend(chunk[: max_bytes - len(data)])
                    if len(data) >= max_bytes:
                        break
            return response.status, bytes(data).decode("utf-8", errors="replace")

    async def stream_lines(self, url: str) -> AsyncIterator[str]:
        """
        Open a streaming GET and yield non-blank lines as they arrive.

        The read has no total timeout: the connection is held open for as
        long as the server keeps it. A socket silent for longer than the
        stream read timeout raises asyncio.TimeoutError.
        """
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(
            total=None,
            sock_connect=self._timeout,
            sock_read=self._stream_read_timeout,
        )
        async with session.get(url, headers=self._headers(), timeout=timeout) as response:
            response.raise_for_status()
            async for raw in response.content:
                line = raw.decode("utf-8", errors="replace").strip()
                if line:
                    yield line

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "YouTubeHttp":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
