"""
Data Types

Pydantic models shared across the subsystem.
"""

from vector_intel.types.clusters import (
    Cluster,
    ClusterAlgorithm,
    ClusterAnalysis,
    ClusterConfig,
    ClusteringMetadata,
    ClusteringResult,
    ClusterStatistics,
    GNNClusteringOptions,
    GNNConfig,
    Theme,
)
from vector_intel.types.entities import (
    Entity,
    EntityLinkCandidate,
    EntitySearchResult,
    GraphNode,
    NetworkMetadata,
    ObservedEntity,
    PaginatedEntities,
    SocialStructure,
)
from vector_intel.types.results import (
    CacheEntry,
    CacheStats,
    HealthStatus,
    ModelLoadProgress,
    ModelStatus,
    RateLimitUsage,
    ServiceHealth,
    ServiceMetrics,
    VectorRecord,
    VectorSearchResult,
    VectorStoreStats,
)
from vector_intel.types.vectors import (
    BatchEmbeddingResult,
    EmbeddingVector,
    LinkSuggestion,
    SimilarPassage,
    SimilarityResult,
    SimilarityStats,
    StoredVector,
)

__all__ = [
    # Vectors
    "EmbeddingVector",
    "StoredVector",
    "SimilarityResult",
    "BatchEmbeddingResult",
    "SimilarPassage",
    "LinkSuggestion",
    "SimilarityStats",
    # Clusters
    "ClusterAlgorithm",
    "ClusterConfig",
    "GNNConfig",
    "GNNClusteringOptions",
    "Cluster",
    "ClusteringMetadata",
    "ClusteringResult",
    "ClusterStatistics",
    "ClusterAnalysis",
    "Theme",
    # Entities
    "Entity",
    "GraphNode",
    "ObservedEntity",
    "EntityLinkCandidate",
    "EntitySearchResult",
    "PaginatedEntities",
    "SocialStructure",
    "NetworkMetadata",
    # Results
    "CacheEntry",
    "CacheStats",
    "HealthStatus",
    "ModelLoadProgress",
    "ModelStatus",
    "RateLimitUsage",
    "ServiceHealth",
    "ServiceMetrics",
    "VectorRecord",
    "VectorSearchResult",
    "VectorStoreStats",
]
