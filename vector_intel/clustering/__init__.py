"""
Clustering

Modules:
    algorithms: kmeans, hierarchical, dbscan, greedy similarity grouping
    metrics: silhouette score and cohesion
    engine: ClusterEngine (local algorithms + remote GNN)
"""

from vector_intel.clustering.algorithms import (
    cluster_by_similarity,
    dbscan,
    estimate_optimal_clusters,
    hierarchical,
    kmeans,
    kmeans_plus_plus_init,
)
from vector_intel.clustering.engine import ClusterEngine
from vector_intel.clustering.metrics import cohesion, silhouette_score

__all__ = [
    "ClusterEngine",
    "kmeans",
    "kmeans_plus_plus_init",
    "hierarchical",
    "dbscan",
    "cluster_by_similarity",
    "estimate_optimal_clusters",
    "silhouette_score",
    "cohesion",
]
