"""
Signaler handshake: server affinity token, stream session id, credential refresh.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from scrapchat.chat.exceptions import NegotiationError
from scrapchat.chat.http import YouTubeHttp, generate_zx
from scrapchat.chat.models import Session

logger = logging.getLogger(__name__)

SIGNALER_URL = "https://signaler-pa.youtube.com/punctual"
CHOOSE_SERVER_URL = SIGNALER_URL + "/v1/chooseServer?key={key}"
SESSION_ID_URL = (
    SIGNALER_URL + "/multi-watch/channel?VER=8&gsessionid={gsessionid}&key={key}"
    "&RID=6167&CVER=22&zx={zx}&t=1"
)
REFRESH_CREDS_URL = SIGNALER_URL + "/v1/refreshCreds?key={key}&gsessionid={gsessionid}"

CHOOSE_SERVER_BODY = (
    '[[null,null,null,[9,5],null,[["youtube_live_chat_web"],[1],[[["chat~{video_id}"]]]]],'
    'null,null,0]'
)
SESSION_ID_BODY = (
    'count=1&ofs=0&req0___data__=[[["1",[null,null,null,[9,5],null,'
    '[["youtube_live_chat_web"],[1],[[["chat~{video_id}"]]]],null,null,1],null,3]]]'
)

PROTOBUF_JSON = "application/json+protobuf"
SESSION_ID_MAX_BYTES = 1 << 20

_decoder = json.JSONDecoder()


def parse_server_token(body: str) -> str:
    """
    Parse a chooseServer response.

    Raises:
        NegotiationError: If element 0 of the array is not a string
    """
    try:
        result = json.loads(body)
    except json.JSONDecodeError as e:
        raise NegotiationError(f"chooseServer: decode error: {e}")
    if not isinstance(result, list) or not result or not isinstance(result[0], str):
        raise NegotiationError("chooseServer: gsessionid is not a string")
    return result[0]


def parse_session_id(body: str) -> Optional[str]:
    """
    Extract the stream session id from a noisy getSID response.

    The body is a length-prefixed chunk stream; the first ``[[`` starts a
    nested array whose first element looks like ``[0, ["c", "<sid>", ...]]``.

    Returns:
        The session id, or None if it can't be found
    """
    idx = body.find("[[")
    if idx == -1:
        logger.warning("getSID: JSON array not found")
        return None

    try:
        array, _ = _decoder.raw_decode(body, idx)
    except json.JSONDecodeError as e:
        logger.warning(f"getSID: JSON decode error: {e}")
        return None

    for elem in array:
        if not isinstance(elem, list) or len(elem) < 2:
            continue
        inner: Any = elem[1]
        if not isinstance(inner, list) or len(inner) < 2:
            continue
        if isinstance(inner[1], str):
            return inner[1]

    logger.warning("getSID: SID not found in the JSON structure")
    return None


async def choose_server(http: YouTubeHttp, session: Session) -> str:
    """
    Obtain the server affinity token and store it on the session.

    Raises:
        NegotiationError: On network failure or malformed response
    """
    url = CHOOSE_SERVER_URL.format(key=session.config.api_key)
    body = CHOOSE_SERVER_BODY.format(video_id=session.video_id)
    try:
        status, text = await http.post_text(url, body, PROTOBUF_JSON)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise NegotiationError(f"chooseServer: network error: {e}")

    if status != 200:
        raise NegotiationError(f"chooseServer: HTTP {status}")

    session.gsessionid = parse_server_token(text)
    logger.info(f"Chose server (gsessionid={session.gsessionid})")
    return session.gsessionid


async def get_session_id(http: YouTubeHttp, session: Session) -> str:
    """
    Obtain a stream session id and store it on the session.

    Failures are logged and leave ``session.sid`` empty; the long-poll
    transport refuses to open without one.

    Returns:
        The session id, or "" on failure
    """
    url = SESSION_ID_URL.format(
        gsessionid=session.gsessionid,
        key=session.config.api_key,
        zx=generate_zx(),
    )
    body = SESSION_ID_BODY.format(video_id=session.video_id)
    headers = {"x-webchannel-content-type": PROTOBUF_JSON}

    session.sid = ""
    try:
        status, text = await http.post_text(
            url,
            body,
            "application/x-www-form-urlencoded",
            headers=headers,
            max_bytes=SESSION_ID_MAX_BYTES,
        )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"getSID: network error: {e}")
        return ""

    if status != 200:
        logger.error(f"getSID: HTTP {status}")
        return ""

    sid = parse_session_id(text)
    if sid:
        session.sid = sid
        logger.info(f"Got stream session id (SID={sid})")
    return session.sid


async def refresh_credentials(http: YouTubeHttp, session: Session) -> bool:
    """
    Re-authenticate the session token with the signaler.

    Returns:
        True if the server answered 200
    """
    url = REFRESH_CREDS_URL.format(key=session.config.api_key, gsessionid=session.gsessionid)
    body = json.dumps([session.session_token])
    try:
        status, _ = await http.post_text(url, body, PROTOBUF_JSON)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.error(f"refreshCreds: network error: {e}")
        return False

    logger.debug(f"refreshCreds: HTTP {status}")
    return status == 200
