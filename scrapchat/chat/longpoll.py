"""
Long-poll connection to the signaler push channel.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from typing import AsyncIterator, Callable, Optional

import aiohttp

from scrapchat.chat.exceptions import NegotiationError
from scrapchat.chat.http import YouTubeHttp, generate_zx
from scrapchat.chat.models import Session
from scrapchat.chat.negotiator import SIGNALER_URL, get_session_id, refresh_credentials
from scrapchat.chat.reconnect import ReconnectionManager

logger = logging.getLogger(__name__)

LONG_POLL_URL = (
    SIGNALER_URL + "/multi-watch/channel?VER=8&gsessionid={gsessionid}&key={key}"
    "&RID=rpc&SID={sid}&AID=0&CI=0&TYPE=xmlhttp&zx={zx}&t=1"
)

REFRESH_INTERVAL_SEC = 4 * 60
MAX_REFRESHES = 4


class LongPollTransport:
    """
    Streams pushed lines from the signaler, reconnecting forever.

    Credentials are refreshed every ``refresh_interval`` seconds of an open
    connection. After ``max_refreshes`` refreshes the stream session id is
    re-acquired and the connection reopened.
    """

    def __init__(
        self,
        http: YouTubeHttp,
        session: Session,
        reconnect_backoff: float = 0.5,
        refresh_interval: float = REFRESH_INTERVAL_SEC,
        max_refreshes: int = MAX_REFRESHES,
        stop_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._http = http
        self._session = session
        self._refresh_interval = refresh_interval
        self._max_refreshes = max_refreshes
        self._clock = clock
        self._reconnection_manager = ReconnectionManager(
            backoff=reconnect_backoff,
            stop_event=stop_event,
        )

        self._closed = False
        self._total_reconnects = 0

    def poll_url(self) -> str:
        """Long-poll URL with a fresh request correlator."""
        return LONG_POLL_URL.format(
            gsessionid=self._session.gsessionid,
            key=self._session.config.api_key,
            sid=self._session.sid,
            zx=generate_zx(),
        )

    async def refresh(self) -> None:
        """Refresh credentials and count the refresh cycle."""
        logger.info("Refreshing signaler credentials")
        await refresh_credentials(self._http, self._session)
        self._session.refresh_count += 1

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield non-blank pushed lines until closed.

        Refresh and rotation checks run after the consumer has processed
        each line.

        Raises:
            NegotiationError: If the session has no stream session id
        """
        if not self._session.sid:
            raise NegotiationError("Handshake incomplete: no stream session id")

        while not self._closed:
            if not self._session.sid and not await get_session_id(self._http, self._session):
                logger.warning("No stream session id, retrying")
            else:
                try:
                    async with aclosing(self._http.stream_lines(self.poll_url())) as stream:
                        connected = False
                        last_refresh = self._clock()
                        async for line in stream:
                            if not connected:
                                logger.debug("Connected, streaming...")
                                self._reconnection_manager.reset()
                                connected = True

                            yield line
                            if self._closed:
                                break

                            if self._clock() - last_refresh > self._refresh_interval:
                                await self.refresh()
                                last_refresh = self._clock()

                            if self._session.refresh_count >= self._max_refreshes:
                                logger.info("Rotating stream session id")
                                self._session.refresh_count = 0
                                await get_session_id(self._http, self._session)
                                break
                        else:
                            logger.info("Stream closed by server")
                except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                    logger.warning(f"Error reading stream: {e}")

            if self._closed:
                break
            self._total_reconnects += 1
            if not await self._reconnection_manager.wait_before_reconnect():
                break

        logger.debug("Long-poll transport closed")

    def close(self) -> None:
        """Stop reconnecting; the current read ends with the worker."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def total_reconnects(self) -> int:
        """Get total number of reconnections."""
        return self._total_reconnects
