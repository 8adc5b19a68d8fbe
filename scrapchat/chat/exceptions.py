"""
Custom exceptions for the YouTube live chat client.
"""


class ScrapChatError(Exception):
    """Base exception for all scrapchat errors."""
    pass


class PlatformNotSupportedError(ScrapChatError):
    """Requested platform has no chat fetcher."""
    pass


class BootstrapError(ScrapChatError):
    """Failed to fetch or parse the watch page configuration."""
    pass


class NotLiveError(BootstrapError):
    """The stream is not live (no live chat continuation found)."""
    pass


class NegotiationError(ScrapChatError):
    """Failed to obtain a server affinity token or stream session id."""
    pass


class TransportError(ScrapChatError):
    """Long-poll connection failed or was closed."""
    pass


class ProtocolError(ScrapChatError):
    """Response carried no recognized continuation data."""
    pass


class DecodeError(ScrapChatError):
    """Chat action payload could not be decoded."""
    pass


class SessionBusyError(ScrapChatError):
    """Session already has a fetch in flight."""
    pass
