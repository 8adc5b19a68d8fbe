"""Tests for the long-poll transport."""

import asyncio
import itertools

import aiohttp
import pytest

from conftest import FakeHttp, negotiation_routes
from scrapchat.chat.exceptions import NegotiationError
from scrapchat.chat.longpoll import LongPollTransport
from scrapchat.chat.reconnect import ReconnectionManager


async def take(lines, count):
    """Read count lines from an async iterator, then close it."""
    taken = []
    async for line in lines:
        taken.append(line)
        if len(taken) == count:
            break
    await lines.aclose()
    return taken


@pytest.mark.asyncio
async def test_lines_stream_from_poll_url(session):
    """Test that lines are read from the session's long-poll URL."""
    http = FakeHttp(streams=[["a", "b"]])
    transport = LongPollTransport(http, session, reconnect_backoff=0)

    assert await take(transport.lines(), 2) == ["a", "b"]

    url = http.stream_urls[0]
    assert "gsessionid=srv1" in url
    assert "SID=sid1" in url
    assert "RID=rpc" in url
    assert "TYPE=xmlhttp" in url


@pytest.mark.asyncio
async def test_lines_require_session_id(session):
    """Test that the transport refuses to open without a session id."""
    session.sid = ""
    transport = LongPollTransport(FakeHttp(), session)

    with pytest.raises(NegotiationError):
        await take(transport.lines(), 1)


@pytest.mark.asyncio
async def test_reconnects_after_error_and_server_close(session):
    """Test that errors and closed streams are followed by reconnects."""
    http = FakeHttp(streams=[
        aiohttp.ClientPayloadError("broken"),
        ["a"],
        ["b"],
    ])
    transport = LongPollTransport(http, session, reconnect_backoff=0)

    assert await take(transport.lines(), 2) == ["a", "b"]

    assert transport.total_reconnects == 2
    assert len(http.stream_urls) == 3


@pytest.mark.asyncio
async def test_reconnects_after_read_timeout(session):
    """Test that a silent connection that times out is reopened."""
    http = FakeHttp(streams=[asyncio.TimeoutError(), ["a"]])
    transport = LongPollTransport(http, session, reconnect_backoff=0)

    assert await take(transport.lines(), 1) == ["a"]

    assert transport.total_reconnects == 1
    assert len(http.stream_urls) == 2


@pytest.mark.asyncio
async def test_refresh_and_session_id_rotation(session):
    """Test credential refresh and session id rotation."""
    session.session_token = "tok1"
    http = FakeHttp(
        routes=negotiation_routes(sids=("sid2",)),
        streams=[["a", "b", "unused"], ["c"]],
    )
    ticks = itertools.count(0, 300)
    transport = LongPollTransport(
        http,
        session,
        reconnect_backoff=0,
        refresh_interval=240,
        max_refreshes=2,
        clock=lambda: next(ticks),
    )

    assert await take(transport.lines(), 3) == ["a", "b", "c"]

    assert len(http.posts_to("refreshCreds")) == 2
    assert len(http.posts_to("RID=6167")) == 1
    assert session.sid == "sid2"
    assert session.refresh_count == 0
    assert "SID=sid2" in http.stream_urls[1]


@pytest.mark.asyncio
async def test_no_refresh_before_interval(session):
    """Test that lines within the interval don't refresh credentials."""
    http = FakeHttp(routes=negotiation_routes(), streams=[["a", "b", "c"]])
    transport = LongPollTransport(http, session, refresh_interval=240, clock=lambda: 0.0)

    await take(transport.lines(), 3)

    assert http.posts_to("refreshCreds") == []
    assert session.refresh_count == 0


@pytest.mark.asyncio
async def test_close_stops_reconnecting(session):
    """Test that a closed transport ends the line stream."""
    http = FakeHttp(streams=[["a"], ["b"]])
    transport = LongPollTransport(http, session, reconnect_backoff=0)
    lines = transport.lines()

    assert await lines.__anext__() == "a"
    transport.close()

    with pytest.raises(StopAsyncIteration):
        await lines.__anext__()
    assert transport.closed


@pytest.mark.asyncio
async def test_reconnection_manager_fixed_backoff():
    """Test the fixed, uncapped backoff used by the transport."""
    manager = ReconnectionManager(backoff=0)

    for _ in range(5):
        assert await manager.wait_before_reconnect() is True

    assert manager.attempts == 5
    assert manager.backoff == 0
    manager.reset()
    assert manager.attempts == 0


@pytest.mark.asyncio
async def test_reconnection_manager_stops_on_event():
    """Test that a set stop event ends the wait without another attempt."""
    stop_event = asyncio.Event()
    manager = ReconnectionManager(backoff=60, stop_event=stop_event)

    stop_event.set()

    assert await asyncio.wait_for(manager.wait_before_reconnect(), timeout=1) is False
