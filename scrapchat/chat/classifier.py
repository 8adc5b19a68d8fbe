"""
Classification of lines pushed over the long-poll connection.

The patterns were derived from observed traffic; lines that match none of
them are logged so protocol drift shows up in the logs.
"""

import logging
import re
import time
from typing import Callable, Optional

from scrapchat.chat.models import PushEvent, PushKind

logger = logging.getLogger(__name__)

FIRST_CHAT_RE = re.compile(r'\[\[\d+,\[\[null,null,\["([^"]+)"\]\]\]\]')
NO_CHAT_RE = re.compile(r'\[\[\d*,\[\[\[\[.*\[null,null,\["\d*')
CHAT_TIMESTAMP_RE = re.compile(r"\d{16,}")

IDLE_REFRESH_SEC = 10.0


class PushClassifier:
    """
    Turns each pushed line into a PushEvent.

    Tests are ordered and the first match wins: session announce, idle
    refresh, no-chat, timestamped chat, unrecognized. Latency is measured
    from the previous classified line (or from construction for the first).
    """

    def __init__(
        self,
        idle_refresh_sec: float = IDLE_REFRESH_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._idle_refresh_sec = idle_refresh_sec
        self._clock = clock
        self._last_time = clock()

    def reset(self) -> None:
        """Restart latency measurement from now."""
        self._last_time = self._clock()

    def classify(self, line: str, now: Optional[float] = None) -> PushEvent:
        """
        Classify one line.

        Args:
            line: Non-blank line from the long-poll stream
            now: Arrival time (defaults to the classifier clock)

        Returns:
            PushEvent
        """
        if now is None:
            now = self._clock()
        latency = now - self._last_time
        self._last_time = now

        first = FIRST_CHAT_RE.search(line)
        if first:
            return PushEvent(PushKind.SESSION_ANNOUNCE, latency=latency, session_token=first.group(1))

        if latency >= self._idle_refresh_sec:
            return PushEvent(PushKind.REFRESH, latency=latency)

        if NO_CHAT_RE.search(line):
            return PushEvent(PushKind.IDLE, latency=latency)

        timestamp = CHAT_TIMESTAMP_RE.search(line)
        if timestamp:
            return PushEvent(PushKind.TIMESTAMPED, latency=latency, timestamp=timestamp.group(0))

        logger.warning(f"[{int(latency * 1000)}ms] Unrecognized push line: {line}")
        return PushEvent(PushKind.UNRECOGNIZED, latency=latency)
