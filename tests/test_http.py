"""Tests for the HTTP wrapper."""

import pytest

from scrapchat.chat.http import STREAM_READ_TIMEOUT_SEC, YouTubeHttp, generate_zx


class FakeResponse:
    def __init__(self, chunks):
        self.content = self._iter(chunks)

    @staticmethod
    async def _iter(chunks):
        for chunk in chunks:
            yield chunk

    def raise_for_status(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Records the requests an aiohttp ClientSession would send."""

    def __init__(self, chunks):
        self.chunks = chunks
        self.closed = False
        self.requests = []

    def get(self, url, headers=None, timeout=None):
        self.requests.append((url, headers, timeout))
        return FakeResponse(self.chunks)


@pytest.mark.asyncio
async def test_stream_lines_has_read_timeout():
    """Test that a long-poll read gives up on a silent socket."""
    http = YouTubeHttp(timeout=10, stream_read_timeout=120)
    fake = FakeSession([b"a\n", b"\n", b"  b \n"])
    http._session = fake

    lines = [line async for line in http.stream_lines("https://signaler-pa.youtube.com/bind")]

    assert lines == ["a", "b"]
    _, _, timeout = fake.requests[0]
    assert timeout.total is None
    assert timeout.sock_connect == 10
    assert timeout.sock_read == 120


def test_stream_read_timeout_default():
    """Test the default silence limit on streaming reads."""
    assert YouTubeHttp()._stream_read_timeout == STREAM_READ_TIMEOUT_SEC == 300.0


@pytest.mark.asyncio
async def test_cookie_header_sent_with_stream():
    """Test that the Cookie header goes out with streaming requests."""
    http = YouTubeHttp(cookie_header="SID=abc")
    fake = FakeSession([])
    http._session = fake

    assert [line async for line in http.stream_lines("https://signaler-pa.youtube.com/bind")] == []
    _, headers, _ = fake.requests[0]
    assert headers["Cookie"] == "SID=abc"


def test_generate_zx():
    """Test the request correlator shape."""
    zx = generate_zx()

    assert len(zx) == 16
    assert zx.isalnum() and zx.lower() == zx
