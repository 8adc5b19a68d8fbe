"""Shared fakes and payload builders for the live chat tests."""

import asyncio
import json
from typing import Any, Optional

import pytest

from scrapchat.chat.models import ClientConfig, Session


class FakeHttp:
    """
    In-memory stand-in for YouTubeHttp.

    - pages: url -> bytes served by iter_chunks
    - html: url -> text served by get_text
    - routes: url substring -> (status, text), an exception, or a list of
      those consumed in order (the last entry repeats)
    - json_responses: get_live_chat responses (dicts or exceptions) in order;
      once exhausted post_json blocks until cancelled
    - streams: one entry per stream_lines call, a list of lines or an
      exception; after the last scripted entry the stream stays open
    """

    def __init__(self, pages=None, html=None, routes=None, json_responses=None, streams=None,
                 chunk_size: int = 64):
        self.pages = pages or {}
        self.html = html or {}
        self.routes = routes or {}
        self.json_responses = list(json_responses or [])
        self.streams = list(streams or [])
        self.chunk_size = chunk_size
        self.cookie_header = ""

        self.payloads: list[dict] = []
        self.posts: list[tuple[str, str]] = []
        self.stream_urls: list[str] = []
        self.closed = False

    async def iter_chunks(self, url, chunk_size=128 * 1024, max_bytes=None):
        body = self.pages[url]
        if isinstance(body, Exception):
            raise body
        if max_bytes is not None:
            body = body[:max_bytes]
        for i in range(0, len(body), self.chunk_size):
            yield body[i:i + self.chunk_size]

    async def get_text(self, url, timeout=None):
        text = self.html[url]
        if isinstance(text, Exception):
            raise text
        return text

    async def post_json(self, url, payload):
        self.payloads.append(payload)
        if not self.json_responses:
            await asyncio.Event().wait()
        response = self.json_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def post_text(self, url, body, content_type, headers=None, max_bytes=None):
        self.posts.append((url, body))
        for key, response in self.routes.items():
            if key in url:
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                if isinstance(response, Exception):
                    raise response
                return response
        return 404, ""

    async def stream_lines(self, url):
        self.stream_urls.append(url)
        script = self.streams.pop(0) if self.streams else []
        if isinstance(script, Exception):
            raise script
        for line in script:
            yield line
        if not self.streams:
            await asyncio.Event().wait()

    def posts_to(self, fragment: str) -> list[str]:
        """Bodies of post_text calls whose URL contains fragment."""
        return [body for url, body in self.posts if fragment in url]

    async def close(self):
        self.closed = True


def make_watch_page(
    continuation: str = "CONT1",
    video_id: str = "vid1",
    with_config: bool = True,
) -> bytes:
    """Watch page with the embedded ytcfg and ytInitialData objects."""
    ytcfg = {
        "INNERTUBE_API_KEY": "AIzaInnertube",
        "INNERTUBE_CONTEXT": {"client": {"clientName": "WEB", "clientVersion": "2.20250101"}},
        "INNERTUBE_CLIENT_VERSION": "2.20250101",
        "LIVE_CHAT_BASE_TANGO_CONFIG": {"apiKey": "tangoKey"},
        "ID_TOKEN": "idtok",
    }
    sub_menu = [
        {"title": "Top chat", "continuation": {"reloadContinuationData": {"continuation": "TOP"}}},
        {"title": "Live chat", "continuation": {"reloadContinuationData": {"continuation": continuation}}},
    ]
    initial = {
        "contents": {"twoColumnWatchNextResults": {"conversationBar": {"liveChatRenderer": {
            "header": {"liveChatHeaderRenderer": {"viewSelector": {
                "sortFilterSubMenuRenderer": {"subMenuItems": sub_menu}
            }}}
        }}}},
        "currentVideoEndpoint": {"watchEndpoint": {"videoId": video_id}},
    }
    parts = ["<html><head><title>live</title>"]
    if with_config:
        parts.append(f"<script>ytcfg.set({json.dumps(ytcfg)});</script>")
    parts.append("<body>" + "x" * 300)
    parts.append(f"<script>var ytInitialData = {json.dumps(initial)};</script></body></html>")
    return "".join(parts).encode("utf-8")


def text_action(
    message_id: str,
    runs: list,
    author: str = "alice",
    channel_id: str = "UC1",
    timestamp_usec: str = "1700000000000000",
) -> dict:
    """addChatItemAction carrying a liveChatTextMessageRenderer."""
    return {"addChatItemAction": {"item": {"liveChatTextMessageRenderer": {
        "id": message_id,
        "message": {"runs": runs},
        "authorName": {"simpleText": author},
        "authorExternalChannelId": channel_id,
        "authorPhoto": {"thumbnails": [{"url": "http://x/a32.png"}, {"url": "http://x/a64.png"}]},
        "timestampUsec": timestamp_usec,
    }}}}


def chat_response(
    actions: Optional[list] = None,
    invalidation: Optional[tuple] = None,
    timed: Optional[tuple] = None,
) -> dict[str, Any]:
    """get_live_chat response with the given continuation (token, timeoutMs)."""
    continuation: dict[str, Any] = {}
    if invalidation is not None:
        continuation["invalidationContinuationData"] = {
            "continuation": invalidation[0], "timeoutMs": invalidation[1],
        }
    if timed is not None:
        continuation["timedContinuationData"] = {
            "continuation": timed[0], "timeoutMs": timed[1],
        }
    live = {"continuations": [continuation] if continuation else []}
    if actions is not None:
        live["actions"] = actions
    return {"continuationContents": {"liveChatContinuation": live}}


SID_BODY = '51\n[[0,["c","{sid}","",8,12,30000]]]\n24\n[[1,["noop"]]]\n'


def negotiation_routes(server: str = "srv1", sids=("sid1",)) -> dict:
    """post_text routes for a successful handshake."""
    return {
        "chooseServer": (200, json.dumps([server, None, None])),
        "RID=6167": [(200, SID_BODY.replace("{sid}", sid)) for sid in sids],
        "refreshCreds": (200, "[]"),
    }


@pytest.fixture
def session():
    """Invalidation-mode session after a completed handshake."""
    return Session(
        video_id="vid1",
        continuation="CONT1",
        config=ClientConfig(
            innertube_api_key="AIzaInnertube",
            api_key="tangoKey",
            context={"client": {"clientName": "WEB"}},
        ),
        gsessionid="srv1",
        sid="sid1",
        invalidation=True,
        timeout_ms=10000,
    )
