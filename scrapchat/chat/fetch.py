"""
get_live_chat request and response decoding.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from scrapchat.chat.exceptions import DecodeError, ProtocolError, TransportError
from scrapchat.chat.http import YouTubeHttp
from scrapchat.chat.models import (
    Author,
    ChatMessage,
    ContinuationState,
    InvalidationContinuation,
    Session,
    TimedContinuation,
)
from scrapchat.chat.pool import ObjectPool, text_part_pool
from scrapchat.chat.utils import dig

logger = logging.getLogger(__name__)

GET_LIVE_CHAT_URL = "https://www.youtube.com/youtubei/v1/live_chat/get_live_chat?prettyPrint=false"


class FetchTrigger(str, Enum):
    """Why a get_live_chat request is issued."""

    CHECK = "check"          # setup probe, keeps the bootstrap token in invalidation mode
    FIRST = "first"          # unconditional fetch
    TIMEOUT = "timeout"      # poll after an idle period
    TIMESTAMP = "timestamp"  # push carried a publish timestamp


def build_payload(
    session: Session,
    trigger: FetchTrigger,
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the get_live_chat request body for a trigger."""
    payload: Dict[str, Any] = {
        "context": session.config.context,
        "continuation": session.continuation,
        "webClientInfo": {"IsDocumentHidden": False},
    }
    if trigger is FetchTrigger.TIMEOUT:
        payload["isInvalidationTimeoutRequest"] = True
    elif trigger is FetchTrigger.TIMESTAMP:
        payload["invalidationPayloadLastPublishAtUsec"] = timestamp or ""
    return payload


def _timeout_ms(data: Dict[str, Any]) -> int:
    try:
        return int(data.get("timeoutMs") or 0)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"invalid timeoutMs {data.get('timeoutMs')!r}: {e}")


def parse_continuation(data: Any) -> ContinuationState:
    """
    Read the continuation state from a get_live_chat response.

    Raises:
        ProtocolError: If neither an invalidation nor a timed continuation
            is present, or its timeout is not a number
    """
    continuations = dig(data, "continuationContents", "liveChatContinuation", "continuations")
    if not isinstance(continuations, list) or not continuations:
        raise ProtocolError("no continuation data available")

    cont = continuations[0]
    invalidation = dig(cont, "invalidationContinuationData")
    if isinstance(invalidation, dict):
        return InvalidationContinuation(
            token=str(invalidation.get("continuation") or ""),
            timeout_ms=_timeout_ms(invalidation),
        )

    timed = dig(cont, "timedContinuationData")
    if isinstance(timed, dict):
        return TimedContinuation(
            token=str(timed.get("continuation") or ""),
            timeout_ms=_timeout_ms(timed),
        )

    raise ProtocolError("no known continuation data type found")


def parse_timestamp_usec(value: Any) -> Tuple[int, int]:
    """
    Split a microsecond timestamp string into Unix seconds and milliseconds.

    Returns (0, 0) for values that aren't integers.
    """
    try:
        usec = int(value)
    except (TypeError, ValueError):
        return 0, 0
    msec = usec // 1000
    return msec // 1000, msec % 1000


class ChatDecoder:
    """Decodes liveChatTextMessageRenderer actions into ChatMessages."""

    def __init__(self, pool: Optional[ObjectPool] = None):
        self._pool = pool or text_part_pool()

    def decode(self, data: Any) -> List[ChatMessage]:
        """
        Decode every chat message in a response, in server order.

        Actions that aren't text messages or have no runs are skipped;
        malformed ones are logged and skipped.
        """
        actions = dig(data, "continuationContents", "liveChatContinuation", "actions", default=[])
        if not isinstance(actions, list):
            logger.warning("Response actions is not a list")
            return []

        messages: List[ChatMessage] = []
        for action in actions:
            renderer = dig(action, "addChatItemAction", "item", "liveChatTextMessageRenderer")
            if renderer is None:
                continue
            try:
                message = self.decode_renderer(renderer)
            except DecodeError as e:
                logger.warning(f"Skipping chat action: {e}")
                continue
            if message is not None:
                messages.append(message)
        return messages

    def decode_renderer(self, renderer: Any) -> Optional[ChatMessage]:
        """
        Decode one text message renderer.

        Returns:
            ChatMessage, or None if the message has no runs

        Raises:
            DecodeError: If the payload shape is unexpected
        """
        if not isinstance(renderer, dict):
            raise DecodeError(f"renderer is {type(renderer).__name__}, not an object")

        runs = dig(renderer, "message", "runs", default=[])
        if not isinstance(runs, list):
            raise DecodeError("message runs is not a list")
        if not runs:
            return None

        try:
            text = self._render_runs(runs)
            photos = dig(renderer, "authorPhoto", "thumbnails", default=[]) or []
            thumbnail = photos[0].get("url", "") if photos else ""
            author = Author(
                id=str(renderer.get("authorExternalChannelId") or ""),
                name=str(dig(renderer, "authorName", "simpleText", default="")),
                thumbnail=thumbnail,
            )
        except (AttributeError, TypeError, KeyError) as e:
            raise DecodeError(f"malformed message {renderer.get('id')!r}: {e}")

        seconds, _ = parse_timestamp_usec(renderer.get("timestampUsec"))
        return ChatMessage(
            id=str(renderer.get("id") or ""),
            message=text,
            author=author,
            timestamp=seconds,
        )

    def _render_runs(self, runs: List[Any]) -> str:
        with self._pool.checkout() as parts:
            for run in runs:
                text = run.get("text")
                if text:
                    parts.append(text)
                    continue
                emoji = run.get("emoji") or {}
                if emoji.get("isCustomEmoji"):
                    thumbnails = dig(emoji, "image", "thumbnails", default=[])
                    if thumbnails:
                        parts.append(f" {thumbnails[-1].get('url', '')} ")
                else:
                    parts.append(emoji.get("emojiId", ""))
            return "".join(parts)


async def fetch_live_chat(
    http: YouTubeHttp,
    session: Session,
    decoder: ChatDecoder,
    trigger: FetchTrigger,
    timestamp: Optional[str] = None,
) -> List[ChatMessage]:
    """
    Issue a get_live_chat request and update the session from the response.

    Args:
        http: HTTP wrapper
        session: Stream session (must not have another fetch in flight)
        decoder: Message decoder
        trigger: Reason for the fetch
        timestamp: Publish timestamp cursor for TIMESTAMP fetches

    Returns:
        Decoded messages in server order

    Raises:
        SessionBusyError: If the session is already fetching
        TransportError: On network failure
        ProtocolError: If the response has no continuation data
    """
    with session.fetching():
        payload = build_payload(session, trigger, timestamp)
        try:
            data = await http.post_json(GET_LIVE_CHAT_URL, payload)
        except ValueError as e:
            # Covers JSONDecodeError and bodies that aren't valid UTF-8
            raise ProtocolError(f"get_live_chat: unmarshal error: {e}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"get_live_chat: HTTP error: {e}")

        state = parse_continuation(data)
        session.apply(state, keep_token=trigger is FetchTrigger.CHECK)
        messages = decoder.decode(data)

    logger.debug(
        f"Fetched {len(messages)} messages ({trigger.value}, "
        f"{'invalidation' if session.invalidation else 'timed'}, timeout={session.timeout_ms}ms)"
    )
    return messages
