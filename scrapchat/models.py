"""Data models and configuration for scrapchat."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class OutputTarget(str, Enum):
    """Where CLI results go."""

    LOG = "log"
    FILE = "file"


class OutputFormat(str, Enum):
    """How CLI results are rendered."""

    DEFAULT = "default"
    JSON = "json"
    CUSTOM = "custom"


class ChannelInfo(BaseModel):
    """Channel metadata read from a channel page."""

    id: str = ""
    name: str = ""
    image: str = ""
    description: str = ""
    url: str = ""

    @property
    def live_url(self) -> str:
        """URL of the channel's current live stream."""
        return f"{self.url.rstrip('/')}/live"


class Config(BaseModel):
    """Configuration model."""

    # Bootstrap settings
    page_max_bytes: int = 2 * 1024 * 1024
    request_timeout_sec: float = 30
    channel_info_timeout_sec: float = 5

    # Long-poll settings
    reconnect_backoff_sec: float = 0.5
    stream_read_timeout_sec: float = 300
    refresh_interval_sec: float = 240
    max_refreshes: int = 4
    idle_refresh_sec: float = 10

    # Delivery settings
    invalidation_message_delay_ms: int = 50
    queue_size: int = 1

    # Cookies (Netscape format)
    cookies_file: Optional[str] = None

    # Output settings
    output: OutputTarget = OutputTarget.LOG
    format: OutputFormat = OutputFormat.DEFAULT
    custom_output: Optional[str] = None

    verbose: bool = False
