"""
Channel metadata scraping.
"""

import asyncio
import logging

import aiohttp
from bs4 import BeautifulSoup

from scrapchat.chat.exceptions import ScrapChatError
from scrapchat.chat.http import YouTubeHttp
from scrapchat.models import ChannelInfo

logger = logging.getLogger(__name__)

YOUTUBE_URL = "https://www.youtube.com/"
CHANNEL_INFO_TIMEOUT_SEC = 5.0


def normalize_channel_url(path: str) -> str:
    """Turn a bare ``@handle`` into a channel URL; URLs pass through."""
    if not path.startswith("http") and "@" in path:
        return YOUTUBE_URL + path
    return path


def is_handle(path: str) -> bool:
    """Whether the path names a channel by handle rather than a stream."""
    return "@" in path


def parse_channel_info(html: str) -> ChannelInfo:
    """Read channel metadata from the page's og: meta tags."""
    soup = BeautifulSoup(html, "html.parser")

    def meta(prop: str) -> str:
        content = ""
        for tag in soup.find_all("meta", attrs={"property": prop}):
            content = tag.get("content", "") or ""
        return content

    url = meta("og:url")
    channel_id = url.split("/channel/", 1)[1] if "/channel/" in url else ""

    info = ChannelInfo(
        id=channel_id,
        name=meta("og:title"),
        image=meta("og:image"),
        description=meta("og:description"),
        url=url,
    )
    for field, value in info.model_dump().items():
        if not value:
            logger.debug(f"Channel {field} not found")
    return info


async def fetch_channel_info(
    http: YouTubeHttp,
    path: str,
    timeout: float = CHANNEL_INFO_TIMEOUT_SEC,
) -> ChannelInfo:
    """
    Fetch channel metadata.

    Args:
        http: HTTP wrapper
        path: Channel URL or ``@handle``
        timeout: Request timeout in seconds

    Returns:
        ChannelInfo

    Raises:
        ScrapChatError: If the channel page can't be fetched
    """
    url = normalize_channel_url(path)
    try:
        html = await http.get_text(url, timeout=timeout)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ScrapChatError(f"Failed to fetch channel info from {url}: {e}")

    return parse_channel_info(html)


async def resolve_live_url(
    http: YouTubeHttp,
    path: str,
    timeout: float = CHANNEL_INFO_TIMEOUT_SEC,
) -> str:
    """
    Resolve a stream reference to a page URL that carries the live chat.

    Handles go through the channel page to the channel's /live URL; any
    other reference is used as is.
    """
    if not is_handle(path):
        return path

    info = await fetch_channel_info(http, path, timeout=timeout)
    if not info.url:
        raise ScrapChatError(f"No channel URL found for {path}")
    logger.info(f"Resolved {path} to {info.live_url}")
    return info.live_url
