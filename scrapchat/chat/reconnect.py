"""
Reconnection manager for the long-poll connection.
"""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ReconnectionManager:
    """
    Manages waits between reconnection attempts.

    The wait is fixed and there is no attempt cap: a live session stays
    connected for as long as the stream runs.
    """

    def __init__(
        self,
        backoff: float = 0.5,
        stop_event: Optional[asyncio.Event] = None,
    ):
        """
        Initialize reconnection manager.

        Args:
            backoff: Wait in seconds before each reconnection attempt
            stop_event: When set, waits end early and no further attempt is made
        """
        self._backoff = backoff
        self._stop_event = stop_event
        self._attempts = 0

    async def wait_before_reconnect(self) -> bool:
        """
        Wait before attempting reconnection.

        Returns:
            True if should retry, False if stopped
        """
        self._attempts += 1
        logger.debug(f"Reconnection attempt {self._attempts} in {self._backoff:.1f}s")

        if self._stop_event is None:
            await asyncio.sleep(self._backoff)
            return True

        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._backoff)
        except asyncio.TimeoutError:
            pass
        return not self._stop_event.is_set()

    def reset(self) -> None:
        """Reset reconnection state after successful connection."""
        if self._attempts > 0:
            logger.debug(
                f"Connection established after {self._attempts} attempts, "
                "resetting reconnection state"
            )
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Get the number of reconnection attempts."""
        return self._attempts

    @property
    def backoff(self) -> float:
        """Get the wait between attempts."""
        return self._backoff
