"""
Clustering Quality Metrics

silhouette_score: mean scikit-learn silhouette s(i) = (b - a) / max(a, b) in
    Euclidean distance. Noise points (-1) are dropped before scoring and
    members of single-point clusters are left out of the mean.
cohesion: mean pairwise cosine similarity inside a cluster (1.0 for one member).
"""

from __future__ import annotations

import numpy as np
from sklearn.metrics import silhouette_samples

from vector_intel.errors import ClusteringError
from vector_intel.utils.similarity import similarity_matrix

NOISE = -1


def silhouette_score(data: np.ndarray, labels: np.ndarray) -> float:
    """
    Silhouette of a partition, in [-1, 1].

    Raises:
        ClusteringError: Empty data, fewer than two clusters, or no point
            in a cluster of two or more members
    """
    data = np.asarray(data, dtype=np.float64)
    labels = np.asarray(labels)
    if data.ndim != 2 or data.shape[0] == 0:
        raise ClusteringError("Silhouette score requires non-empty data")
    if labels.shape[0] != data.shape[0]:
        raise ClusteringError("Silhouette score requires one label per point")

    clustered = labels != NOISE
    cluster_ids = np.unique(labels[clustered])
    if len(cluster_ids) < 2:
        raise ClusteringError("Silhouette score requires at least two clusters")

    points = data[clustered]
    point_labels = labels[clustered]
    ids, sizes = np.unique(point_labels, return_counts=True)
    eligible = np.isin(point_labels, ids[sizes >= 2])
    if not eligible.any():
        raise ClusteringError("Silhouette score undefined: every cluster has a single member")

    samples = silhouette_samples(points, point_labels, metric="euclidean")
    return float(np.clip(samples[eligible].mean(), -1.0, 1.0))


def pairwise_similarities(vectors: np.ndarray) -> np.ndarray:
    """Upper-triangle cosine similarities (each unordered pair once)."""
    sims = similarity_matrix(vectors)
    rows, cols = np.triu_indices(sims.shape[0], k=1)
    return sims[rows, cols]


def cohesion(vectors: np.ndarray) -> float:
    arr = np.asarray(vectors, dtype=np.float64)
    if arr.shape[0] <= 1:
        return 1.0
    return float(pairwise_similarities(arr).mean())
