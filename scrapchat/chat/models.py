"""
Message and session models for YouTube live chat.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Union
import logging

from scrapchat.chat.exceptions import SessionBusyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Author:
    """Chat message author."""
    id: str
    name: str
    thumbnail: str = ""

    @property
    def url(self) -> str:
        """Channel URL of the author."""
        return f"https://youtube.com/channel/{self.id}"


@dataclass(frozen=True)
class ChatMessage:
    """Represents a live chat message."""
    id: str
    message: str
    author: Author
    timestamp: int  # Unix seconds

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "message": self.message,
            "author": {
                "id": self.author.id,
                "name": self.author.name,
                "thumbnail": self.author.thumbnail,
                "url": self.author.url,
            },
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class InvalidationContinuation:
    """Push-driven continuation: the server signals new data over long-poll."""
    token: str
    timeout_ms: int


@dataclass(frozen=True)
class TimedContinuation:
    """Fallback continuation: re-poll unconditionally after timeout_ms."""
    token: str
    timeout_ms: int


ContinuationState = Union[InvalidationContinuation, TimedContinuation]


class PushKind(str, Enum):
    """Classification of a long-poll line."""

    SESSION_ANNOUNCE = "session_announce"
    REFRESH = "refresh"
    IDLE = "idle"
    TIMESTAMPED = "timestamped"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class PushEvent:
    """Result of classifying one pushed line."""
    kind: PushKind
    latency: float = 0.0
    timestamp: Optional[str] = None
    session_token: Optional[str] = None


@dataclass
class ClientConfig:
    """Values extracted from the page's ytcfg object."""
    innertube_api_key: str = ""
    api_key: str = ""
    context: Dict[str, Any] = field(default_factory=dict)
    client_version: str = ""
    id_token: str = ""


@dataclass
class Session:
    """
    Mutable state of one live chat stream.

    Owned by a single LiveChatClient. Only one fetch may use the session
    at a time.
    """
    video_id: str
    continuation: str
    config: ClientConfig
    gsessionid: str = ""
    sid: str = ""
    timeout_ms: int = 0
    invalidation: bool = False
    session_token: str = ""
    refresh_count: int = 0
    _fetching: bool = field(default=False, repr=False)

    def apply(self, state: ContinuationState, keep_token: bool = False) -> None:
        """
        Adopt a continuation state received from the server.

        Args:
            state: Continuation parsed from a get_live_chat response
            keep_token: Keep the current token for invalidation continuations
                (used by the setup probe)
        """
        self.timeout_ms = state.timeout_ms
        if isinstance(state, InvalidationContinuation):
            if not keep_token:
                self.continuation = state.token
            self.invalidation = True
        else:
            self.continuation = state.token
            self.invalidation = False

    @contextmanager
    def fetching(self) -> Iterator["Session"]:
        """Mark the session as used by a fetch for the duration of the block."""
        if self._fetching:
            raise SessionBusyError(f"Session for video {self.video_id} already has a fetch in flight")
        self._fetching = True
        try:
            yield self
        finally:
            self._fetching = False
