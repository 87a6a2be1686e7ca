"""
Embedding Service

Cache-checked embedding on top of a pluggable EmbeddingProvider.

Initialization:
    The provider is initialized lazily and at most once. The first caller
    creates a shared future; concurrent callers await that same future.
    A failed initialization clears it so a later call can retry. When a
    fallback provider is configured, a primary failure switches the
    service to the fallback instead of failing (degraded mode).

Batching:
    embed_batch() partitions texts into cached and uncached, computes only
    the uncached subset in chunks of batch_size (at most `concurrency`
    chunks in flight), caches the new vectors, and returns embeddings in
    the caller's original order.

Example:
    >>> service = EmbeddingService(provider, cache)
    >>> vec = await service.embed("Machine learning is transforming research.")
    >>> batch = await service.embed_batch(["a", "b", "a"])
    >>> batch.cached_count, batch.computed_count
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum

from vector_intel.cache import MultiTierEmbeddingCache
from vector_intel.errors import DimensionMismatchError
from vector_intel.providers.base import EmbeddingProvider
from vector_intel.types import BatchEmbeddingResult, CacheStats, EmbeddingVector

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 32
DEFAULT_CONCURRENCY = 4


class InitState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class EmbeddingService:
    """
    Embeds text through a provider with multi-tier caching.

    Args:
        provider: Primary embedding provider
        cache: Embedding cache (None disables caching)
        batch_size: Texts per provider call in embed_batch
        concurrency: Chunks in flight at once in embed_batch
        fallback: Provider used when the primary cannot initialize
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: MultiTierEmbeddingCache | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        fallback: EmbeddingProvider | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.batch_size = max(1, batch_size)
        self.concurrency = max(1, concurrency)
        self.fallback = fallback
        self.state = InitState.UNINITIALIZED
        self.degraded = False
        self._init_future: asyncio.Future[None] | None = None

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self.state is InitState.READY

    @property
    def model_version(self) -> str:
        return self.provider.model_version

    @property
    def dimensions(self) -> int:
        return self.provider.dimensions

    async def initialize(self) -> None:
        """Initialize the provider at most once; concurrent callers share the work."""
        if self.state is InitState.READY:
            return
        if self._init_future is not None:
            await self._init_future
            return

        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()
        self._init_future = future
        self.state = InitState.INITIALIZING

        try:
            await self._initialize_provider()
        except Exception as e:
            self.state = InitState.FAILED
            self._init_future = None
            future.set_exception(e)
            # Mark retrieved so an unawaited failure does not log a warning
            future.exception()
            raise
        except BaseException:
            self.state = InitState.UNINITIALIZED
            self._init_future = None
            future.cancel()
            raise

        self.state = InitState.READY
        future.set_result(None)

    async def _initialize_provider(self) -> None:
        try:
            await self.provider.initialize()
        except Exception as e:
            if self.fallback is None:
                logger.error("Embedding provider %s failed to initialize: %s", self.provider.model_name, e)
                raise
            logger.warning(
                "Embedding provider %s unavailable (%s); falling back to %s",
                self.provider.model_name, e, self.fallback.model_name,
            )
            await self.fallback.initialize()
            self.provider = self.fallback
            self.fallback = None
            self.degraded = True

        if self.cache is not None:
            await self.cache.initialize()
        logger.info("Embedding service ready (model_version=%s)", self.provider.model_version)

    # -------------------------------------------------------------------------
    # Embedding
    # -------------------------------------------------------------------------

    def _make_vector(self, text: str, values: list[float]) -> EmbeddingVector:
        if len(values) != self.provider.dimensions:
            raise DimensionMismatchError(self.provider.dimensions, len(values))
        return EmbeddingVector(
            text=text, vector=values, model_version=self.provider.model_version
        )

    async def embed(self, text: str) -> EmbeddingVector:
        """Embed one text, consulting and populating the cache."""
        await self.initialize()
        version = self.provider.model_version

        if self.cache is not None:
            cached = await self.cache.get(text, version)
            if cached is not None:
                return cached

        vector = self._make_vector(text, await self.provider.embed_single(text))
        if self.cache is not None:
            await self.cache.set(text, vector)
        return vector

    async def embed_batch(self, texts: list[str]) -> BatchEmbeddingResult:
        """
        Embed many texts, computing only cache misses.

        Returns:
            BatchEmbeddingResult with embeddings in input order
        """
        start = time.perf_counter()
        await self.initialize()
        version = self.provider.model_version

        results: list[EmbeddingVector | None] = [None] * len(texts)
        cached_count = 0

        # Duplicate texts are computed once and fanned back out
        pending: dict[str, list[int]] = {}
        for index, text in enumerate(texts):
            if text in pending:
                pending[text].append(index)
                continue
            cached = await self.cache.get(text, version) if self.cache is not None else None
            if cached is not None:
                results[index] = cached
                cached_count += 1
            else:
                pending[text] = [index]

        uncached = list(pending)
        chunks = [
            uncached[i : i + self.batch_size]
            for i in range(0, len(uncached), self.batch_size)
        ]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_chunk(chunk: list[str]) -> list[list[float]]:
            async with semaphore:
                return await self.provider.embed(chunk)

        computed = await asyncio.gather(*(run_chunk(c) for c in chunks))

        for chunk, vectors in zip(chunks, computed):
            for text, values in zip(chunk, vectors, strict=True):
                vector = self._make_vector(text, values)
                for index in pending[text]:
                    results[index] = vector
                if self.cache is not None:
                    await self.cache.set(text, vector)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Embedded batch of %d (%d cached, %d computed) in %.1fms",
            len(texts), cached_count, len(texts) - cached_count, duration_ms,
        )
        return BatchEmbeddingResult(
            embeddings=[r for r in results if r is not None],
            cached_count=cached_count,
            computed_count=len(texts) - cached_count,
            duration_ms=duration_ms,
        )

    # -------------------------------------------------------------------------
    # Cache / Lifecycle
    # -------------------------------------------------------------------------

    async def clear_cache(self) -> None:
        if self.cache is not None:
            await self.cache.clear()

    async def get_cache_stats(self) -> CacheStats:
        if self.cache is None:
            return CacheStats()
        return await self.cache.get_stats()

    async def close(self) -> None:
        if self.cache is not None:
            await self.cache.close()
        await self.provider.close()
        self.state = InitState.UNINITIALIZED
        self._init_future = None
