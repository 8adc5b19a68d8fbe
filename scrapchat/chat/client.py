"""
Live chat streaming engine.
"""

import asyncio
import logging
import time
from contextlib import aclosing
from typing import AsyncIterator, Callable, List, Optional

from scrapchat.chat import bootstrap
from scrapchat.chat.classifier import IDLE_REFRESH_SEC, PushClassifier
from scrapchat.chat.exceptions import (
    BootstrapError,
    NegotiationError,
    NotLiveError,
    ProtocolError,
    TransportError,
)
from scrapchat.chat.fetch import ChatDecoder, FetchTrigger, fetch_live_chat
from scrapchat.chat.http import YouTubeHttp
from scrapchat.chat.longpoll import MAX_REFRESHES, REFRESH_INTERVAL_SEC, LongPollTransport
from scrapchat.chat.models import ChatMessage, PushEvent, PushKind, Session
from scrapchat.chat.negotiator import choose_server, get_session_id
from scrapchat.chat.pool import byte_buffer_pool, text_part_pool

logger = logging.getLogger(__name__)


class LiveChatClient:
    """
    Streams the live chat of one YouTube stream.

    ``start()`` runs the setup phase (bootstrap, probe fetch, handshake) and
    raises on failure. A background worker then drives fetches, either from
    the long-poll transport (invalidation mode) or from a timer (timed
    mode), and hands messages to a small queue consumed by ``messages()``.
    A slow consumer therefore slows the worker down.

    Usage:
        client = LiveChatClient(url, http)
        await client.start()
        async for message in client.messages():
            print(f"{message.author.name}: {message.message}")
    """

    def __init__(
        self,
        url: str,
        http: YouTubeHttp,
        page_max_bytes: int = bootstrap.PAGE_MAX_BYTES,
        reconnect_backoff: float = 0.5,
        refresh_interval: float = REFRESH_INTERVAL_SEC,
        max_refreshes: int = MAX_REFRESHES,
        idle_refresh_sec: float = IDLE_REFRESH_SEC,
        invalidation_message_delay_ms: int = 50,
        queue_size: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize live chat client.

        Args:
            url: Watch URL or channel /live URL
            http: HTTP wrapper (owned by the caller)
            page_max_bytes: Maximum bytes read from the watch page
            reconnect_backoff: Wait in seconds before reopening the long-poll
            refresh_interval: Seconds between credential refreshes
            max_refreshes: Refreshes before the stream session id is rotated
            idle_refresh_sec: Push latency that forces a timeout fetch
            invalidation_message_delay_ms: Delay between messages in invalidation mode
            queue_size: Delivery queue size
            clock: Monotonic clock
        """
        self._url = url
        self._http = http
        self._page_max_bytes = page_max_bytes
        self._reconnect_backoff = reconnect_backoff
        self._refresh_interval = refresh_interval
        self._max_refreshes = max_refreshes
        self._invalidation_delay = invalidation_message_delay_ms / 1000
        self._clock = clock

        self._session: Optional[Session] = None
        self._classifier = PushClassifier(idle_refresh_sec=idle_refresh_sec, clock=clock)
        self._decoder = ChatDecoder(text_part_pool())
        self._page_buffers = byte_buffer_pool()

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._stop_event = asyncio.Event()
        self._worker: Optional[asyncio.Task] = None
        self._transport: Optional[LongPollTransport] = None
        self._last_fetch_at: Optional[float] = None

        # Statistics
        self._total_messages = 0
        self._total_errors = 0

    async def start(self) -> None:
        """
        Run the setup phase and start the background worker.

        Raises:
            NotLiveError: If the stream is not live
            BootstrapError: If the watch page can't be fetched or parsed
            NegotiationError: If the long-poll handshake fails
        """
        if self._worker is not None:
            return

        logger.info(f"Starting live chat for {self._url}")
        result = await bootstrap.resolve(
            self._http, self._url, max_bytes=self._page_max_bytes, pool=self._page_buffers
        )
        self._session = Session(
            video_id=result.video_id,
            continuation=result.continuation,
            config=result.config,
        )

        try:
            await fetch_live_chat(self._http, self._session, self._decoder, FetchTrigger.CHECK)
        except ProtocolError as e:
            raise NotLiveError(f"Stream not live: {e}")
        except TransportError as e:
            raise BootstrapError(f"Live chat probe failed: {e}")

        if not self._session.invalidation and self._session.timeout_ms == 0:
            raise NotLiveError("Stream not live")

        if self._session.invalidation:
            await self._negotiate()

        self._worker = asyncio.create_task(self._run())

    async def _negotiate(self) -> None:
        await choose_server(self._http, self._session)
        if not await get_session_id(self._http, self._session):
            raise NegotiationError("Handshake incomplete: no stream session id")

    async def messages(self) -> AsyncIterator[ChatMessage]:
        """
        Yield chat messages until the client is stopped.

        Leaving the iteration stops the client.
        """
        await self.start()

        try:
            while True:
                try:
                    message = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    if self._worker.done():
                        if not self._worker.cancelled() and self._worker.exception():
                            logger.error(
                                f"Chat worker failed: {self._worker.exception()}",
                                exc_info=self._worker.exception(),
                            )
                        break
                    continue
                yield message
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the worker and the long-poll transport."""
        if self._stop_event.is_set() and (self._worker is None or self._worker.done()):
            return

        logger.info("Stopping live chat...")
        self._stop_event.set()
        if self._transport:
            self._transport.close()

        if self._worker and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        """Worker: drive fetches until stopped."""
        mode = "invalidation" if self._session.invalidation else "timed"
        logger.info(f"Chat worker started for video {self._session.video_id} ({mode} mode)")
        try:
            while not self._stop_event.is_set():
                try:
                    if self._session.invalidation:
                        await self._poll_invalidation()
                    else:
                        await self._poll_timed()
                except NegotiationError as e:
                    logger.warning(f"Handshake failed: {e}")
                    self._total_errors += 1
                    await self._pause(self._reconnect_backoff)
                except Exception as e:
                    logger.error(f"Unexpected error: {e}", exc_info=True)
                    self._total_errors += 1
                    await self._pause(self._reconnect_backoff)
        finally:
            logger.info("Chat worker stopped")

    async def _poll_invalidation(self) -> None:
        """Fetch on push notifications until the mode changes or we stop."""
        if not self._session.gsessionid or not self._session.sid:
            await self._negotiate()

        self._transport = LongPollTransport(
            self._http,
            self._session,
            reconnect_backoff=self._reconnect_backoff,
            refresh_interval=self._refresh_interval,
            max_refreshes=self._max_refreshes,
            stop_event=self._stop_event,
            clock=self._clock,
        )
        self._classifier.reset()
        try:
            async with aclosing(self._transport.lines()) as lines:
                async for line in lines:
                    logger.debug(line)
                    await self._dispatch(self._classifier.classify(line))
                    if self._stop_event.is_set():
                        break
                    if not self._session.invalidation:
                        logger.info("Switched to timed continuation")
                        break
        finally:
            self._transport.close()
            self._transport = None

    async def _poll_timed(self) -> None:
        """
        Re-poll every server-declared timeout until the mode changes.

        The interval runs from the end of the previous fetch, so time spent
        pacing the last batch counts towards it.
        """
        while not self._stop_event.is_set() and not self._session.invalidation:
            interval = self._session.timeout_ms / 1000 if self._session.timeout_ms > 0 else self._reconnect_backoff
            if self._last_fetch_at is not None:
                interval = max(0.0, interval - (self._clock() - self._last_fetch_at))
            await self._pause(interval)
            if self._stop_event.is_set():
                return
            await self._fetch_and_emit(FetchTrigger.FIRST)

        if self._session.invalidation:
            logger.info("Switched to invalidation continuation")

    async def _dispatch(self, event: PushEvent) -> None:
        """Issue the fetch a push event calls for."""
        if event.kind is PushKind.SESSION_ANNOUNCE:
            self._session.session_token = event.session_token or ""
            await self._fetch_and_emit(FetchTrigger.FIRST)
        elif event.kind is PushKind.REFRESH:
            await self._fetch_and_emit(FetchTrigger.TIMEOUT)
        elif event.kind is PushKind.TIMESTAMPED:
            await self._fetch_and_emit(FetchTrigger.TIMESTAMP, event.timestamp)
        elif event.kind is PushKind.IDLE:
            logger.debug("No chat activity")

    async def _fetch_and_emit(self, trigger: FetchTrigger, timestamp: Optional[str] = None) -> None:
        try:
            messages = await fetch_live_chat(
                self._http, self._session, self._decoder, trigger, timestamp
            )
        except (ProtocolError, TransportError) as e:
            logger.warning(f"Fetch abandoned ({trigger.value}): {e}")
            self._total_errors += 1
            return
        finally:
            self._last_fetch_at = self._clock()
        await self._emit(messages)

    async def _emit(self, messages: List[ChatMessage]) -> None:
        """Queue a batch, pacing messages across the poll interval."""
        for message in messages:
            await self._queue.put(message)
            self._total_messages += 1
            if self._stop_event.is_set():
                return
            await self._pause(self.pacing_delay(len(messages)))

    def pacing_delay(self, batch_size: int) -> float:
        """
        Seconds to wait after each message of a batch.

        Timed mode spreads the batch over the poll timeout with integer
        division, so a single message waits the whole timeout.
        """
        if self._session.invalidation:
            return self._invalidation_delay
        return (self._session.timeout_ms // max(batch_size, 1)) / 1000

    async def _pause(self, seconds: float) -> None:
        """Sleep that ends early when the client is stopped."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    @property
    def session(self) -> Optional[Session]:
        """Get the stream session (None before start)."""
        return self._session

    @property
    def is_running(self) -> bool:
        """Check if the worker is running."""
        return self._worker is not None and not self._worker.done()

    @property
    def total_messages(self) -> int:
        """Get total number of delivered messages."""
        return self._total_messages

    @property
    def total_errors(self) -> int:
        """Get total number of errors."""
        return self._total_errors

    async def __aenter__(self) -> "LiveChatClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
