"""
Bootstrap: read the watch page and extract the embedded player configuration.
"""

import asyncio
import json
import logging
import re
from contextlib import aclosing
from dataclasses import dataclass
from typing import Optional, Tuple

import aiohttp

from scrapchat.chat.exceptions import BootstrapError, NotLiveError
from scrapchat.chat.http import YouTubeHttp
from scrapchat.chat.models import ClientConfig
from scrapchat.chat.pool import ObjectPool, byte_buffer_pool
from scrapchat.chat.utils import dig

logger = logging.getLogger(__name__)

PAGE_MAX_BYTES = 2 * 1024 * 1024
PAGE_CHUNK_SIZE = 128 * 1024

# Both patterns end on the opening brace of the embedded object
YTCFG_RE = re.compile(r"ytcfg\.set\(\s*\{")
INITIAL_DATA_RE = re.compile(
    r"(?:window\s*\[\s*[\"']ytInitialData[\"']\s*\]|ytInitialData)\s*=\s*\{"
)

CONTINUATION_PATH = (
    "contents", "twoColumnWatchNextResults", "conversationBar", "liveChatRenderer",
    "header", "liveChatHeaderRenderer", "viewSelector", "sortFilterSubMenuRenderer",
    "subMenuItems", 1, "continuation", "reloadContinuationData", "continuation",
)
VIDEO_ID_PATH = ("currentVideoEndpoint", "watchEndpoint", "videoId")

_decoder = json.JSONDecoder()


@dataclass
class BootstrapResult:
    """Everything the stream needs from the watch page."""
    config: ClientConfig
    continuation: str
    video_id: str


def page_text(buffer: bytearray) -> str:
    """Decode the bytes read so far. A trailing partial character is dropped."""
    with memoryview(buffer) as view:
        return str(view, "utf-8", "ignore")


def _decode_object(text: str, start: int) -> Optional[dict]:
    """
    Decode the JSON object that begins at ``start`` in the page text.

    Returns None while the object is still incomplete.
    """
    try:
        obj, _ = _decoder.raw_decode(text, start)
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def extract_client_config(text: str) -> Optional[ClientConfig]:
    """Find the ytcfg.set({...}) call that carries the innertube context."""
    for match in YTCFG_RE.finditer(text):
        cfg = _decode_object(text, match.end() - 1)
        if not cfg:
            continue
        context = cfg.get("INNERTUBE_CONTEXT")
        if not isinstance(context, dict):
            continue
        return ClientConfig(
            innertube_api_key=str(cfg.get("INNERTUBE_API_KEY") or ""),
            api_key=str(dig(cfg, "LIVE_CHAT_BASE_TANGO_CONFIG", "apiKey", default="")),
            context=context,
            client_version=str(cfg.get("INNERTUBE_CLIENT_VERSION") or ""),
            id_token=str(cfg.get("ID_TOKEN") or ""),
        )
    return None


def extract_initial_data(text: str) -> Optional[Tuple[str, str]]:
    """
    Find ytInitialData and pull the live chat continuation and video id.

    Returns:
        Tuple of (continuation, video_id), either may be empty, or None if
        the object is not (yet) in the buffer
    """
    match = INITIAL_DATA_RE.search(text)
    if not match:
        return None
    data = _decode_object(text, match.end() - 1)
    if data is None:
        return None
    continuation = dig(data, *CONTINUATION_PATH, default="") or ""
    video_id = dig(data, *VIDEO_ID_PATH, default="") or ""
    return str(continuation), str(video_id)


async def resolve(
    http: YouTubeHttp,
    url: str,
    max_bytes: int = PAGE_MAX_BYTES,
    pool: Optional[ObjectPool] = None,
) -> BootstrapResult:
    """
    Fetch a watch/live page and extract the stream bootstrap values.

    Args:
        http: HTTP wrapper
        url: Watch or channel /live URL
        max_bytes: Maximum number of body bytes to read
        pool: Buffer pool (a private one is used if omitted)

    Returns:
        BootstrapResult

    Raises:
        BootstrapError: If the page can't be fetched or has no ytcfg
        NotLiveError: If the page has no live chat continuation
    """
    pool = pool or byte_buffer_pool()
    config: Optional[ClientConfig] = None
    initial: Optional[Tuple[str, str]] = None

    with pool.checkout() as buffer:
        try:
            async with aclosing(http.iter_chunks(url, PAGE_CHUNK_SIZE, max_bytes)) as chunks:
                async for chunk in chunks:
                    buffer.extend(chunk)
                    text = page_text(buffer)
                    if config is None:
                        config = extract_client_config(text)
                    if initial is None:
                        initial = extract_initial_data(text)
                    if config is not None and initial is not None:
                        break
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise BootstrapError(f"Error visiting {url}: {e}")
        logger.debug(f"Read {len(buffer)} bytes from {url}")

    if config is None:
        raise BootstrapError(f"No player configuration found in {url}")
    if initial is None or not initial[0]:
        raise NotLiveError(f"No live chat found at {url}")

    continuation, video_id = initial
    logger.info(f"Bootstrapped video {video_id or '?'} from {url}")
    return BootstrapResult(config=config, continuation=continuation, video_id=video_id)
