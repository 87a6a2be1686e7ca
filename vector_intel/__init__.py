"""
vector-intel - Client-side Vector Intelligence

Turns text into embeddings, caches and persists them, finds similar items,
clusters them and links entities against a remote vector/graph service.

Example:
    >>> from vector_intel import VectorIntel
    >>> async with VectorIntel("./intel") as intel:
    ...     await intel.index_text("Quarterly revenue grew 12%", id="p1", document_id="doc-1")
    ...     hits = await intel.search("revenue growth")

Main Classes:
    VectorIntel: Composition root for all components
    IntelConfig: Configuration management
    RemoteClient: Resilient client for the remote service
    EmbeddingService: Cached, batched embedding
    VectorStore: Persistent similarity search
    ClusterEngine: Clustering over stored vectors
    EntityLinker: Semantic entity linking
    PassageSearch: Similar passages and cross-document links
"""

__version__ = "0.1.0"


# Public API - lazy imports to avoid loading heavy dependencies
def __getattr__(name: str):
    """Lazy import public API components."""

    if name == "VectorIntel":
        from vector_intel.api.intel import VectorIntel
        return VectorIntel

    if name == "IntelConfig":
        from vector_intel.config.settings import IntelConfig
        return IntelConfig

    if name == "RemoteClient":
        from vector_intel.client import RemoteClient
        return RemoteClient

    if name == "EmbeddingService":
        from vector_intel.embedding import EmbeddingService
        return EmbeddingService

    if name == "VectorStore":
        from vector_intel.storage import VectorStore
        return VectorStore

    if name == "ClusterEngine":
        from vector_intel.clustering import ClusterEngine
        return ClusterEngine

    if name == "EntityLinker":
        from vector_intel.resolution import EntityLinker
        return EntityLinker

    if name == "PassageSearch":
        from vector_intel.search import PassageSearch
        return PassageSearch

    # Types
    if name in (
        "EmbeddingVector",
        "StoredVector",
        "SimilarityResult",
        "ClusterConfig",
        "ClusteringResult",
        "Entity",
        "ObservedEntity",
    ):
        from vector_intel import types
        return getattr(types, name)

    raise AttributeError(f"module 'vector_intel' has no attribute {name!r}")


__all__ = [
    # Main classes
    "VectorIntel",
    "IntelConfig",
    "RemoteClient",
    "EmbeddingService",
    "VectorStore",
    "ClusterEngine",
    "EntityLinker",
    "PassageSearch",

    # Types
    "EmbeddingVector",
    "StoredVector",
    "SimilarityResult",
    "ClusterConfig",
    "ClusteringResult",
    "Entity",
    "ObservedEntity",

    # Version
    "__version__",
]
