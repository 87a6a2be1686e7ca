"""
Vector Store

Persistent document-scoped vectors with brute-force cosine search.

find_similar() scores the query against every candidate (optionally
restricted to one document and minus excluded ids), keeps scores at or
above the threshold, sorts descending, truncates to top_k and assigns
ranks from 1. A search slower than slow_search_ms is logged as a warning
and counted in the stats; it is never an error.

Every stored vector must have the store's dimension (fixed by the first
write, or by the persisted table). A bounded LRU mirrors hot reads.

Example:
    >>> store = VectorStore(VectorIndex(path / "vectors"))
    >>> await store.initialize()
    >>> await store.store(vector)
    >>> hits = await store.find_similar(query, threshold=0.3, top_k=10, document_id="doc-1")
"""

from __future__ import annotations

import logging
import time
from typing import Any

import numpy as np

from vector_intel.cache.memory import LRUCache
from vector_intel.errors import DimensionMismatchError
from vector_intel.storage.lancedb import VectorIndex
from vector_intel.types import SimilarityResult, StoredVector, VectorStoreStats
from vector_intel.utils.similarity import cosine_similarities

logger = logging.getLogger(__name__)

DEFAULT_CACHE_ITEMS = 10000
SLOW_SEARCH_MS = 50.0


class VectorStore:
    """
    Document-scoped vector storage and similarity search.

    Args:
        index: Persistent LanceDB index
        cache_items: Capacity of the in-memory LRU mirror
        slow_search_ms: Searches slower than this are logged as warnings
    """

    def __init__(
        self,
        index: VectorIndex,
        *,
        cache_items: int = DEFAULT_CACHE_ITEMS,
        slow_search_ms: float = SLOW_SEARCH_MS,
    ) -> None:
        self.index = index
        self.slow_search_ms = slow_search_ms
        self._cache: LRUCache[str, StoredVector] = LRUCache(cache_items)
        self._dimensions: int | None = None
        self._total_searches = 0
        self._total_search_ms = 0.0
        self._slow_searches = 0

    async def initialize(self) -> None:
        await self.index.initialize()
        self._dimensions = await self.index.dimensions()

    async def close(self) -> None:
        self._cache.clear()
        await self.index.close()

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    def _check_dimension(self, vector: list[float]) -> None:
        if self._dimensions is None:
            self._dimensions = len(vector)
        elif len(vector) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(vector))

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def store(self, vector: StoredVector) -> None:
        await self.store_batch([vector])

    async def store_batch(self, vectors: list[StoredVector]) -> None:
        """
        Persist vectors, replacing any with the same id.

        Raises:
            DimensionMismatchError: A vector does not match the store dimension
        """
        if not vectors:
            return

        fixed = self._dimensions
        try:
            for vector in vectors:
                self._check_dimension(vector.vector)
        except DimensionMismatchError:
            self._dimensions = fixed
            raise

        await self.index.upsert(vectors)
        for vector in vectors:
            self._cache.put(vector.id, vector)
        logger.debug("Stored %d vectors", len(vectors))

    async def delete(self, vector_id: str) -> None:
        await self.index.delete([vector_id])
        self._cache.pop(vector_id)

    async def delete_by_document(self, document_id: str) -> None:
        await self.index.delete_by_document(document_id)
        for key in self._cache:
            cached = self._cache.peek(key)
            if cached is not None and cached.document_id == document_id:
                self._cache.pop(key)

    def clear_cache(self) -> None:
        """Drop the in-memory LRU mirror; persisted vectors are untouched."""
        self._cache.clear()

    async def clear(self) -> None:
        await self.index.clear()
        self._cache.clear()
        self._dimensions = None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, vector_id: str) -> StoredVector | None:
        cached = self._cache.get(vector_id)
        if cached is not None:
            return cached

        found = await self.index.get([vector_id])
        if not found:
            return None
        self._cache.put(vector_id, found[0])
        return found[0]

    async def get_many(self, vector_ids: list[str]) -> dict[str, StoredVector]:
        """Look up several ids at once; missing ids are absent from the result."""
        result: dict[str, StoredVector] = {}
        missing: list[str] = []
        for vector_id in vector_ids:
            cached = self._cache.get(vector_id)
            if cached is not None:
                result[vector_id] = cached
            else:
                missing.append(vector_id)

        for vector in await self.index.get(missing):
            self._cache.put(vector.id, vector)
            result[vector.id] = vector
        return result

    async def get_by_document(self, document_id: str) -> list[StoredVector]:
        return await self.index.get_by_document(document_id)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def find_similar(
        self,
        query: list[float],
        *,
        threshold: float = 0.3,
        top_k: int = 10,
        document_id: str | None = None,
        exclude_ids: set[str] | list[str] | None = None,
    ) -> list[SimilarityResult]:
        """
        Rank stored vectors by cosine similarity to the query.

        Args:
            query: Query vector (store dimension)
            threshold: Minimum similarity to keep
            top_k: Maximum results
            document_id: Only search this document's vectors
            exclude_ids: Ids never returned

        Returns:
            Results sorted by descending score, ranked from 1

        Raises:
            DimensionMismatchError: Query does not match the store dimension
        """
        start = time.perf_counter()

        if self._dimensions is not None and len(query) != self._dimensions:
            raise DimensionMismatchError(self._dimensions, len(query))

        ids, matrix = await self.index.vector_matrix(document_id)

        excluded = set(exclude_ids or ())
        if excluded and ids:
            allowed = np.fromiter((i not in excluded for i in ids), dtype=bool, count=len(ids))
            ids = [i for i in ids if i not in excluded]
            matrix = matrix[allowed]

        results: list[SimilarityResult] = []
        if ids and top_k > 0:
            scores = cosine_similarities(query, matrix)
            keep = np.flatnonzero(scores >= threshold)
            # Stable sort keeps insertion order among equal scores
            order = keep[np.argsort(-scores[keep], kind="stable")][:top_k]
            # Only the winners are materialized as StoredVector
            hydrated = await self.get_many([ids[i] for i in order])
            rank = 0
            for i in order:
                candidate = hydrated.get(ids[i])
                if candidate is None:
                    continue
                rank += 1
                results.append(
                    SimilarityResult(
                        id=candidate.id,
                        document_id=candidate.document_id,
                        paragraph_id=candidate.paragraph_id,
                        text=candidate.text,
                        score=float(scores[i]),
                        rank=rank,
                        metadata=candidate.metadata,
                    )
                )

        elapsed_ms = (time.perf_counter() - start) * 1000
        self._total_searches += 1
        self._total_search_ms += elapsed_ms
        if elapsed_ms > self.slow_search_ms:
            self._slow_searches += 1
            logger.warning(
                "Slow similarity search: %.1fms over %d vectors", elapsed_ms, len(ids)
            )
        else:
            logger.debug("Similarity search: %.1fms over %d vectors", elapsed_ms, len(ids))
        return results

    # -------------------------------------------------------------------------
    # Stats / Metadata
    # -------------------------------------------------------------------------

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(
            total_vectors=await self.index.count(),
            cached_vectors=len(self._cache),
            documents=await self.index.document_count(),
            total_searches=self._total_searches,
            avg_search_time_ms=(
                self._total_search_ms / self._total_searches if self._total_searches else 0.0
            ),
            slow_searches=self._slow_searches,
        )

    async def get_metadata(self, key: str) -> Any:
        return await self.index.get_metadata(key)

    async def set_metadata(self, key: str, value: Any) -> None:
        await self.index.set_metadata(key, value)
