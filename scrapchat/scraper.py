"""
Entry point for scraping chat and channel data.
"""

import logging
from contextlib import aclosing
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from scrapchat.channel import fetch_channel_info, resolve_live_url
from scrapchat.chat.client import LiveChatClient
from scrapchat.chat.exceptions import PlatformNotSupportedError
from scrapchat.chat.http import YouTubeHttp
from scrapchat.chat.models import ChatMessage
from scrapchat.cookies import cookie_header, load_cookies
from scrapchat.models import ChannelInfo, Config

logger = logging.getLogger(__name__)

SUPPORTED_PLATFORMS = ("youtube",)


class ScrapChat:
    """
    Live chat and channel info scraper.

    Usage:
        async with ScrapChat() as scrap:
            async for message in scrap.fetch_live_chat("@somechannel"):
                print(message.message)
    """

    def __init__(
        self,
        platform: str = "youtube",
        config: Optional[Config] = None,
        http: Optional[YouTubeHttp] = None,
    ):
        """
        Initialize scraper.

        Args:
            platform: Platform name (only "youtube" is supported)
            config: Configuration (defaults if omitted)
            http: HTTP wrapper (one is created if omitted)

        Raises:
            PlatformNotSupportedError: For any platform other than youtube
        """
        if platform not in SUPPORTED_PLATFORMS:
            raise PlatformNotSupportedError(f"Platform not supported: {platform}")

        self.platform = platform
        self.config = config or Config()
        self._http = http or YouTubeHttp(
            timeout=self.config.request_timeout_sec,
            stream_read_timeout=self.config.stream_read_timeout_sec,
        )
        self._clients: list[LiveChatClient] = []

        if self.config.cookies_file:
            self.add_cookies(self.config.cookies_file)

    def add_cookies(self, path: Union[str, Path]) -> None:
        """Send the cookies of a Netscape cookie file with every request."""
        self._http.cookie_header = cookie_header(load_cookies(path))

    async def start_live_chat_stream(self, path: str) -> LiveChatClient:
        """
        Start streaming the live chat of a stream.

        Args:
            path: Watch URL, channel /live URL, or ``@handle``

        Returns:
            Started LiveChatClient; iterate ``client.messages()``

        Raises:
            NotLiveError: If the stream is not live
            BootstrapError: If the stream page can't be read
            NegotiationError: If the long-poll handshake fails
        """
        url = await resolve_live_url(
            self._http, path, timeout=self.config.channel_info_timeout_sec
        )
        client = LiveChatClient(
            url,
            self._http,
            page_max_bytes=self.config.page_max_bytes,
            reconnect_backoff=self.config.reconnect_backoff_sec,
            refresh_interval=self.config.refresh_interval_sec,
            max_refreshes=self.config.max_refreshes,
            idle_refresh_sec=self.config.idle_refresh_sec,
            invalidation_message_delay_ms=self.config.invalidation_message_delay_ms,
            queue_size=self.config.queue_size,
        )
        await client.start()
        self._clients.append(client)
        return client

    async def fetch_live_chat(self, path: str) -> AsyncIterator[ChatMessage]:
        """Yield live chat messages of a stream until the iteration ends."""
        client = await self.start_live_chat_stream(path)
        try:
            async with aclosing(client.messages()) as messages:
                async for message in messages:
                    yield message
        finally:
            await client.stop()
            if client in self._clients:
                self._clients.remove(client)

    async def fetch_channel_info(self, path: str) -> ChannelInfo:
        """Fetch channel metadata for a channel URL or ``@handle``."""
        return await fetch_channel_info(
            self._http, path, timeout=self.config.channel_info_timeout_sec
        )

    async def close(self) -> None:
        """Stop all streams and close the HTTP session."""
        for client in self._clients:
            await client.stop()
        self._clients.clear()
        await self._http.close()

    async def __aenter__(self) -> "ScrapChat":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
