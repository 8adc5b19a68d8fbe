"""
YouTube live chat client over the signaler long-poll protocol.
"""

from scrapchat.chat.client import LiveChatClient
from scrapchat.chat.models import Author, ChatMessage, PushEvent, PushKind, Session
from scrapchat.chat.http import YouTubeHttp
from scrapchat.chat.exceptions import (
    ScrapChatError,
    PlatformNotSupportedError,
    BootstrapError,
    NotLiveError,
    NegotiationError,
    TransportError,
    ProtocolError,
    DecodeError,
    SessionBusyError,
)

__all__ = [
    "LiveChatClient",
    "Author",
    "ChatMessage",
    "PushEvent",
    "PushKind",
    "Session",
    "YouTubeHttp",
    "ScrapChatError",
    "PlatformNotSupportedError",
    "BootstrapError",
    "NotLiveError",
    "NegotiationError",
    "TransportError",
    "ProtocolError",
    "DecodeError",
    "SessionBusyError",
]
