"""
VectorIntel - Primary Entry Point

Wires the subsystem together around one data directory:

    <path>/
        cache/embeddings_cache.duckdb   local embedding cache tier
        vectors/                        LanceDB vector table + metadata.json

Components (explicitly constructed, no module-level singletons):
    client      RemoteClient (breaker, limiter, response cache, metrics)
    cache       MultiTierEmbeddingCache (memory -> local -> remote)
    embeddings  EmbeddingService (provider + fallback + cache)
    store       VectorStore (LanceDB)
    clusters    ClusterEngine
    passages    PassageSearch
    linker      EntityLinker

Example:
    >>> async with VectorIntel("./intel") as intel:
    ...     await intel.index_text("Machine learning is transforming research.", id="p1", document_id="doc-1")
    ...     hits = await intel.search("deep learning in research", top_k=5)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx

from vector_intel.cache import LocalEmbeddingStore, MultiTierEmbeddingCache, RemoteEmbeddingStore
from vector_intel.client import RemoteClient
from vector_intel.clustering import ClusterEngine
from vector_intel.config import IntelConfig
from vector_intel.embedding import EmbeddingService
from vector_intel.providers import EmbeddingProvider, ModelLoader, create_embedding_provider
from vector_intel.providers.embedding import HashingEmbeddingProvider
from vector_intel.remote import EntityRepository, GraphService, RemoteVectorService
from vector_intel.resolution import EntityLinker
from vector_intel.search import PassageSearch
from vector_intel.storage import VectorIndex, VectorStore
from vector_intel.types import (
    ClusterConfig,
    LinkSuggestion,
    SimilarityResult,
    SimilarPassage,
    StoredVector,
    Theme,
)


class VectorIntel:
    """
    Vector intelligence facade.

    Args:
        path: Data directory. Created if it doesn't exist.
        config: Optional configuration. Uses defaults (and VECINTEL_* env) if not provided.
        transport: Optional httpx transport for the remote client (tests)
        provider: Optional embedding provider overriding config.embedding_provider
    """

    def __init__(
        self,
        path: str | Path,
        config: IntelConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        provider: EmbeddingProvider | None = None,
    ) -> None:
        self._path = Path(path).resolve()
        self._config = config or IntelConfig()
        cfg = self._config

        self.client = RemoteClient(cfg, transport=transport)

        remote_tier = None
        if cfg.cache_remote_enabled and not cfg.local_mode:
            remote_tier = RemoteEmbeddingStore(self.client)
        self.cache = MultiTierEmbeddingCache(
            local=LocalEmbeddingStore(self._path / "cache"),
            remote=remote_tier,
            memory_size=cfg.cache_memory_size,
            ttl=cfg.cache_ttl,
            sweep_interval=cfg.cache_sweep_interval,
        )

        self.model_loader = ModelLoader(
            cfg.embedding_model_dir,
            max_retries=cfg.model_load_retries,
            retry_delay=cfg.model_load_retry_delay,
        )
        primary = provider or create_embedding_provider(cfg, self.client, self.model_loader)
        fallback = None
        if cfg.embedding_fallback and not isinstance(primary, HashingEmbeddingProvider):
            fallback = HashingEmbeddingProvider(dimensions=primary.dimensions)
        self.embeddings = EmbeddingService(
            primary,
            self.cache,
            batch_size=cfg.embedding_batch_size,
            concurrency=cfg.embedding_concurrency,
            fallback=fallback,
        )

        self.store = VectorStore(
            VectorIndex(self._path / "vectors"),
            cache_items=cfg.store_cache_items,
            slow_search_ms=cfg.store_slow_search_ms,
        )
        self.clusters = ClusterEngine(
            self.store,
            self.client,
            similarity_threshold=cfg.clustering_similarity_threshold,
            random_seed=cfg.clustering_random_seed,
        )
        self.passages = PassageSearch(self.embeddings, self.store)
        self.linker = EntityLinker(
            self.embeddings,
            RemoteVectorService(self.client, cfg.linking_namespace),
            EntityRepository(GraphService(self.client)),
            threshold=cfg.linking_similarity_threshold,
            top_k=cfg.linking_top_k,
        )
        self._initialized = False

    # === Lifecycle ===

    async def initialize(self) -> None:
        if self._initialized:
            return
        self._path.mkdir(parents=True, exist_ok=True)
        await self.store.initialize()
        await self.embeddings.initialize()
        self._initialized = True

    async def close(self) -> None:
        """Release all resources."""
        await self.embeddings.close()
        await self.store.close()
        await self.client.close()
        self._initialized = False

    def reset(self) -> None:
        """Reset client resilience state and metrics, and drop in-memory caches."""
        self.client.reset()
        self.cache.clear_memory()
        self.store.clear_cache()

    async def __aenter__(self) -> "VectorIntel":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # === Properties ===

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config(self) -> IntelConfig:
        return self._config

    # === Convenience ===

    async def index_text(
        self,
        text: str,
        *,
        id: str,
        document_id: str,
        paragraph_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StoredVector:
        """Embed text and store it under id."""
        await self.initialize()
        embedding = await self.embeddings.embed(text)
        stored = StoredVector(
            **embedding.model_dump(),
            id=id,
            document_id=document_id,
            paragraph_id=paragraph_id,
            metadata=metadata or {},
        )
        await self.store.store(stored)
        return stored

    async def index_texts(self, items: list[dict[str, Any]]) -> list[StoredVector]:
        """
        Embed and store many texts in one batch.

        Each item needs text, id and document_id; paragraph_id and metadata
        are optional.
        """
        await self.initialize()
        if not items:
            return []
        batch = await self.embeddings.embed_batch([item["text"] for item in items])
        stored = [
            StoredVector(
                **embedding.model_dump(),
                id=item["id"],
                document_id=item["document_id"],
                paragraph_id=item.get("paragraph_id"),
                metadata=item.get("metadata") or {},
            )
            for item, embedding in zip(items, batch.embeddings, strict=True)
        ]
        await self.store.store_batch(stored)
        return stored

    async def search(
        self,
        text: str,
        *,
        threshold: float | None = None,
        top_k: int | None = None,
        document_id: str | None = None,
        exclude_ids: list[str] | None = None,
    ) -> list[SimilarityResult]:
        """Embed text and rank stored vectors by similarity to it."""
        await self.initialize()
        query = await self.embeddings.embed(text)
        return await self.store.find_similar(
            query.vector,
            threshold=self._config.store_default_threshold if threshold is None else threshold,
            top_k=self._config.store_default_top_k if top_k is None else top_k,
            document_id=document_id,
            exclude_ids=exclude_ids,
        )

    async def find_similar_passages(
        self,
        text: str,
        *,
        document_id: str | None = None,
        threshold: float = 0.6,
        top_k: int = 10,
    ) -> list[SimilarPassage]:
        await self.initialize()
        return await self.passages.find_similar_passages(
            text, document_id=document_id, threshold=threshold, top_k=top_k
        )

    async def find_cross_document_links(
        self,
        document_ids: list[str],
        *,
        threshold: float = 0.7,
    ) -> list[SimilarPassage]:
        """Pairs of similar passages that sit in different documents, best first."""
        await self.initialize()
        return await self.passages.find_cross_document_links(document_ids, threshold=threshold)

    async def suggest_links(
        self,
        paragraphs: dict[str, str],
        *,
        min_score: float = 0.6,
        max_results: int = 5,
    ) -> dict[str, list[LinkSuggestion]]:
        await self.initialize()
        return await self.passages.suggest_links(
            paragraphs, min_score=min_score, max_results=max_results
        )

    async def discover_themes(
        self,
        document_ids: list[str],
        *,
        min_size: int = 3,
        config: ClusterConfig | None = None,
    ) -> list[Theme]:
        """Recurring topics across the given documents, largest first."""
        await self.initialize()
        return await self.clusters.discover_themes(document_ids, min_size=min_size, config=config)
