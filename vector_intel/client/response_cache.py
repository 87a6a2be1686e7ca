"""
Response Cache

TTL cache for idempotent (GET) remote responses. Expired entries are
evicted lazily on read and by a periodic background sweep.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any

from vector_intel.types import CacheEntry

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = 60.0


class ResponseCache:
    """
    In-memory TTL cache keyed by request signature.

    Args:
        default_ttl: Entry lifetime in seconds
        clock: Wall-clock time source (injectable for tests)
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._sweeper: asyncio.Task[None] | None = None

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries[key] = CacheEntry[Any](
            key=key,
            value=value,
            ttl=self.default_ttl if ttl is None else ttl,
            created_at=self._clock(),
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with prefix. Returns count removed."""
        doomed = [k for k in self._entries if k.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove expired entries. Returns count removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    @property
    def size(self) -> int:
        return len(self._entries)

    def start(self, interval: float = SWEEP_INTERVAL) -> None:
        """Start the background sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return

        async def _sweep() -> None:
            while True:
                await asyncio.sleep(interval)
                removed = self.cleanup()
                if removed:
                    logger.debug("Response cache sweep removed %d entries", removed)

        self._sweeper = asyncio.create_task(_sweep())

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None
