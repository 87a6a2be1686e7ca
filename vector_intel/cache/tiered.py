"""
Multi-Tier Embedding Cache

Content-addressed cache for embeddings with three tiers, fastest first:

    1. memory  - bounded LRU (LRUCache)
    2. local   - DuckDB file database (LocalEmbeddingStore)
    3. remote  - shared store behind the RemoteClient (RemoteEmbeddingStore)

Lookup walks the tiers in order. A hit in a slower tier is promoted into
every faster tier before it is returned. A remote miss is an overall miss;
misses are never cached.

Entries older than the TTL (7 days by default) are treated as absent even
when present; a background sweep deletes expired local entries.

Local and remote failures are logged and swallowed: the memory tier keeps
serving regardless. Concurrent check-then-set on the same key is
last-writer-wins with no atomicity guarantee; the worst outcome is a
redundant recomputation.

Example:
    >>> cache = MultiTierEmbeddingCache(local=LocalEmbeddingStore("./cache"))
    >>> await cache.initialize()
    >>> await cache.set("hello", vector)
    >>> hit = await cache.get("hello", vector.model_version)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable

from vector_intel.cache.local import LocalEmbeddingStore, cache_key
from vector_intel.cache.memory import LRUCache
from vector_intel.cache.remote import RemoteEmbeddingStore
from vector_intel.types import CacheStats, EmbeddingVector

logger = logging.getLogger(__name__)

DEFAULT_TTL = 7 * 24 * 60 * 60.0
MAX_MEMORY_SIZE = 1000


class MultiTierEmbeddingCache:
    """
    Memory -> local -> remote embedding cache with promotion.

    Args:
        local: Persistent local tier (None disables it)
        remote: Shared remote tier (None disables it)
        memory_size: Capacity of the in-memory LRU
        ttl: Retention window in seconds
        sweep_interval: Seconds between background sweeps of the local tier
        clock: Wall-clock time source (injectable for tests)
    """

    def __init__(
        self,
        local: LocalEmbeddingStore | None = None,
        remote: RemoteEmbeddingStore | None = None,
        *,
        memory_size: int = MAX_MEMORY_SIZE,
        ttl: float = DEFAULT_TTL,
        sweep_interval: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.local = local
        self.remote = remote
        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._memory: LRUCache[str, EmbeddingVector] = LRUCache(memory_size)
        self._stats = CacheStats()
        self._sweeper: asyncio.Task[None] | None = None
        self._initialized = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the local tier, drop expired entries, start the sweep."""
        if self._initialized:
            return

        if self.local is not None:
            try:
                await self.local.initialize()
            except Exception as e:
                logger.warning("Local embedding cache unavailable, continuing without it: %s", e)
                self.local = None

        await self.cleanup_expired()

        if self.local is not None and self.sweep_interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop())

        self._initialized = True
        logger.info(
            "Embedding cache initialized (local=%s, remote=%s)",
            self.local is not None,
            self.remote is not None,
        )

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None
        if self.local is not None:
            await self.local.close()
        self._initialized = False

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            await self.cleanup_expired()

    # -------------------------------------------------------------------------
    # Cache Operations
    # -------------------------------------------------------------------------

    def _is_expired(self, vector: EmbeddingVector) -> bool:
        return self._clock() - vector.timestamp > self.ttl

    async def get(self, text: str, model_version: str) -> EmbeddingVector | None:
        """Look up memory, then local, then remote; promote on lower-tier hits."""
        key = cache_key(text, model_version)

        # Tier 1: memory
        cached = self._memory.get(key)
        if cached is not None:
            if not self._is_expired(cached):
                self._stats.memory_hits += 1
                return cached
            self._memory.pop(key)

        # Tier 2: local persistent store
        if self.local is not None:
            try:
                local_hit = await self.local.get(text, model_version)
            except Exception as e:
                logger.warning("Local embedding cache read failed: %s", e)
                local_hit = None

            if local_hit is not None:
                if not self._is_expired(local_hit):
                    self._memory.put(key, local_hit)
                    self._stats.local_hits += 1
                    return local_hit
                await self._delete_local(text, model_version)

        # Tier 3: shared remote store
        if self.remote is not None:
            try:
                remote_hit = await self.remote.get(text, model_version)
            except Exception as e:
                logger.warning("Remote embedding cache read failed: %s", e)
                remote_hit = None

            if remote_hit is not None and not self._is_expired(remote_hit):
                self._memory.put(key, remote_hit)
                await self._put_local(remote_hit)
                self._stats.remote_hits += 1
                return remote_hit

        self._stats.misses += 1
        return None

    async def set(self, text: str, vector: EmbeddingVector) -> None:
        """Write through every tier. Only the memory write is guaranteed."""
        if vector.text != text:
            vector = vector.model_copy(update={"text": text})

        self._memory.put(cache_key(text, vector.model_version), vector)
        await self._put_local(vector)

        if self.remote is not None:
            try:
                await self.remote.put(vector)
            except Exception as e:
                logger.warning("Remote embedding cache write failed: %s", e)

    async def clear(self) -> None:
        """Clear the memory and local tiers. The shared remote tier is left alone."""
        self._memory.clear()
        if self.local is not None:
            try:
                await self.local.clear()
            except Exception as e:
                logger.warning("Local embedding cache clear failed: %s", e)
        self._stats = CacheStats()

    def clear_memory(self) -> None:
        self._memory.clear()

    async def cleanup_expired(self) -> int:
        """Delete expired entries from memory and the local tier."""
        removed = 0
        for key in self._memory:
            entry = self._memory.peek(key)
            if entry is not None and self._is_expired(entry):
                self._memory.pop(key)
                removed += 1

        if self.local is not None:
            try:
                removed += await self.local.delete_expired(self._clock() - self.ttl)
            except Exception as e:
                logger.warning("Local embedding cache sweep failed: %s", e)

        if removed:
            logger.info("Removed %d expired embeddings", removed)
        return removed

    async def get_stats(self) -> CacheStats:
        stats = self._stats.model_copy()
        lookups = stats.memory_hits + stats.local_hits + stats.remote_hits + stats.misses
        hits = lookups - stats.misses
        stats.hit_rate = hits / lookups if lookups else 0.0
        stats.memory_size = len(self._memory)
        if self.local is not None:
            try:
                stats.local_size = await self.local.count()
            except Exception as e:
                logger.warning("Local embedding cache count failed: %s", e)
        return stats

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _put_local(self, vector: EmbeddingVector) -> None:
        if self.local is None:
            return
        try:
            await self.local.put(vector)
        except Exception as e:
            logger.warning("Local embedding cache write failed: %s", e)

    async def _delete_local(self, text: str, model_version: str) -> None:
        if self.local is None:
            return
        try:
            await self.local.delete(text, model_version)
        except Exception as e:
            logger.warning("Local embedding cache delete failed: %s", e)
