"""Tests for the signaler handshake."""

import json

import aiohttp
import pytest

from conftest import SID_BODY, FakeHttp, negotiation_routes
from scrapchat.chat.exceptions import NegotiationError
from scrapchat.chat.negotiator import (
    choose_server,
    get_session_id,
    parse_server_token,
    parse_session_id,
    refresh_credentials,
)


def test_parse_server_token():
    """Test reading the server affinity token."""
    assert parse_server_token('["srv1",null,null]') == "srv1"


def test_parse_server_token_rejects_non_string():
    """Test that a non-string element 0 is rejected."""
    with pytest.raises(NegotiationError):
        parse_server_token("[1,2]")
    with pytest.raises(NegotiationError):
        parse_server_token("not json")


def test_parse_session_id_from_noisy_body():
    """Test finding the session id inside the chunked response."""
    assert parse_session_id(SID_BODY.replace("{sid}", "sid1")) == "sid1"


def test_parse_session_id_missing():
    """Test bodies without a session id."""
    assert parse_session_id("no array here") is None
    assert parse_session_id("12\n[[0,[1,2]]]") is None
    assert parse_session_id("12\n[[0,broken") is None


@pytest.mark.asyncio
async def test_choose_server_sets_gsessionid(session):
    """Test that chooseServer stores the token on the session."""
    session.gsessionid = ""
    http = FakeHttp(routes=negotiation_routes(server="srvX"))

    assert await choose_server(http, session) == "srvX"

    assert session.gsessionid == "srvX"
    url, body = http.posts[0]
    assert "key=tangoKey" in url
    assert "chat~vid1" in body


@pytest.mark.asyncio
async def test_choose_server_failures(session):
    """Test that chooseServer failures raise NegotiationError."""
    http = FakeHttp(routes={"chooseServer": (500, "")})
    with pytest.raises(NegotiationError, match="HTTP 500"):
        await choose_server(http, session)

    http = FakeHttp(routes={"chooseServer": aiohttp.ClientConnectionError("refused")})
    with pytest.raises(NegotiationError, match="network error"):
        await choose_server(http, session)


@pytest.mark.asyncio
async def test_get_session_id(session):
    """Test obtaining a stream session id."""
    session.sid = ""
    http = FakeHttp(routes=negotiation_routes(sids=("sidA",)))

    assert await get_session_id(http, session) == "sidA"

    assert session.sid == "sidA"
    url, body = http.posts[0]
    assert "gsessionid=srv1" in url
    assert "RID=6167" in url
    assert "chat~vid1" in body


@pytest.mark.asyncio
async def test_get_session_id_failure_clears_sid(session):
    """Test that a failed getSID leaves the session without a sid."""
    http = FakeHttp(routes={"RID=6167": (400, "")})

    assert await get_session_id(http, session) == ""
    assert session.sid == ""


@pytest.mark.asyncio
async def test_refresh_credentials_sends_session_token(session):
    """Test that refreshCreds posts the session token."""
    session.session_token = "tok1"
    http = FakeHttp(routes=negotiation_routes())

    assert await refresh_credentials(http, session) is True

    assert json.loads(http.posts_to("refreshCreds")[0]) == ["tok1"]
