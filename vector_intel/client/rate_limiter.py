"""
Sliding-Window Rate Limiter

Bounds outbound calls to ``max_requests`` per ``window`` seconds. A call
that finds the window saturated sleeps until the oldest recorded call
leaves the window, then checks again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable

from vector_intel.types import RateLimitUsage

logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter over recorded call timestamps.

    Args:
        max_requests: Calls allowed per window
        window: Window length in seconds
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        max_requests: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._calls: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()

    async def wait_for_slot(self) -> None:
        """Block until the window has capacity, then record this call."""
        now = self._clock()
        self._prune(now)

        if len(self._calls) < self.max_requests:
            self._calls.append(now)
            return

        wait = self._calls[0] + self.window - now
        logger.debug("Rate limit reached, waiting %.3fs", wait)
        await asyncio.sleep(max(wait, 0.0))
        await self.wait_for_slot()

    def get_usage(self) -> RateLimitUsage:
        now = self._clock()
        self._prune(now)
        reset_in = self._calls[0] + self.window - now if self._calls else 0.0
        return RateLimitUsage(
            current=len(self._calls),
            max=self.max_requests,
            reset_in=max(reset_in, 0.0),
        )

    def reset(self) -> None:
        self._calls.clear()
