"""
Clustering Algorithms

Local clustering over an n x d matrix of vectors. Every function returns a
label per row (cluster index from 0, or -1 for noise), so callers can map
labels back onto ids and check coverage.

    kmeans               k-means++ seeding, Euclidean assignment
    hierarchical         scipy centroid linkage, cut at k clusters
    dbscan               scikit-learn DBSCAN in cosine distance
    cluster_by_similarity  greedy single pass against running centroids

Cluster indices are renumbered in order of their first member, so equal
partitions always produce equal label arrays.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage
from scipy.spatial.distance import cdist
from sklearn.cluster import DBSCAN

from vector_intel.errors import ClusteringError
from vector_intel.utils.similarity import cosine_similarities

MIN_ESTIMATED_CLUSTERS = 3
MAX_ESTIMATED_CLUSTERS = 10
NOISE = -1
EPS_TOLERANCE = 1e-12


@dataclass
class LabelResult:
    """Labels plus how the algorithm finished."""

    labels: np.ndarray
    iterations: int | None = None
    converged: bool | None = None


def estimate_optimal_clusters(n: int) -> int:
    """Elbow heuristic: clamp(floor(sqrt(n / 2)), 3, 10), never more than n."""
    if n <= 0:
        raise ClusteringError("Cannot estimate clusters for empty input")
    k = min(max(math.floor(math.sqrt(n / 2)), MIN_ESTIMATED_CLUSTERS), MAX_ESTIMATED_CLUSTERS)
    return min(k, n)


def relabel(labels: np.ndarray) -> np.ndarray:
    """Renumber non-noise labels 0..k-1 in order of first appearance."""
    mapping: dict[int, int] = {}
    out = np.full(labels.shape, NOISE, dtype=np.int64)
    for i, label in enumerate(labels.tolist()):
        if label == NOISE:
            continue
        if label not in mapping:
            mapping[label] = len(mapping)
        out[i] = mapping[label]
    return out


def _check_data(data: np.ndarray) -> np.ndarray:
    arr = np.asarray(data, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] == 0:
        raise ClusteringError("Clustering requires a non-empty n x d matrix")
    return arr


# -----------------------------------------------------------------------------
# k-means
# -----------------------------------------------------------------------------


def kmeans_plus_plus_init(data: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """
    Choose k initial centroids.

    The first centroid is uniform; each next one is drawn with probability
    proportional to the squared distance to its nearest chosen centroid.
    """
    n = data.shape[0]
    chosen = [int(rng.integers(n))]
    nearest = cdist(data, data[chosen], "sqeuclidean").min(axis=1)

    while len(chosen) < k:
        total = nearest.sum()
        if total > 0:
            index = int(rng.choice(n, p=nearest / total))
        else:
            # All remaining points coincide with a centroid
            remaining = np.setdiff1d(np.arange(n), chosen)
            index = int(rng.choice(remaining))
        chosen.append(index)
        nearest = np.minimum(nearest, cdist(data, data[[index]], "sqeuclidean")[:, 0])

    return data[chosen].copy()


def kmeans(
    data: np.ndarray,
    k: int,
    *,
    max_iterations: int = 100,
    rng: np.random.Generator | None = None,
) -> LabelResult:
    """
    Lloyd's algorithm with k-means++ seeding.

    Converges when assignments stop changing; otherwise stops after
    max_iterations. An emptied cluster is reseeded at a random point.
    """
    data = _check_data(data)
    rng = rng or np.random.default_rng()
    n = data.shape[0]
    k = max(1, min(k, n))

    centroids = kmeans_plus_plus_init(data, k, rng)
    labels = np.full(n, NOISE, dtype=np.int64)
    converged = False
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        new_labels = cdist(data, centroids, "sqeuclidean").argmin(axis=1)
        if np.array_equal(new_labels, labels):
            converged = True
            break
        labels = new_labels

        for c in range(k):
            members = data[labels == c]
            if len(members):
                centroids[c] = members.mean(axis=0)
            else:
                centroids[c] = data[int(rng.integers(n))]

    return LabelResult(labels=relabel(labels), iterations=iterations, converged=converged)


# -----------------------------------------------------------------------------
# Hierarchical
# -----------------------------------------------------------------------------


def hierarchical(data: np.ndarray, k: int) -> LabelResult:
    """
    Agglomerative clustering with centroid linkage.

    Builds the full scipy linkage (Euclidean centroid distance) and cuts the
    tree into at most k flat clusters.
    """
    data = _check_data(data)
    n = data.shape[0]
    k = max(1, min(k, n))
    if n == 1:
        return LabelResult(labels=np.zeros(1, dtype=np.int64), iterations=0, converged=True)

    tree = linkage(data, method="centroid", metric="euclidean")
    labels = fcluster(tree, t=k, criterion="maxclust")
    return LabelResult(labels=relabel(labels), iterations=n - k, converged=True)


# -----------------------------------------------------------------------------
# Density
# -----------------------------------------------------------------------------


def dbscan(data: np.ndarray, *, min_similarity: float = 0.3, min_points: int = 3) -> LabelResult:
    """
    Density clustering in cosine distance.

    eps = 1 - min_similarity. A core point has at least min_points
    neighbours within eps (itself included). Core points within eps of each
    other share a cluster; a border point joins the cluster of a core
    neighbour; everything else is noise (-1).
    """
    data = _check_data(data)
    # Tolerance keeps eps > 0 and admits neighbours exactly at the boundary
    eps = max(1.0 - min_similarity, 0.0) + EPS_TOLERANCE
    model = DBSCAN(eps=eps, min_samples=min_points, metric="cosine")
    return LabelResult(labels=relabel(model.fit_predict(data)))


# -----------------------------------------------------------------------------
# Greedy similarity grouping
# -----------------------------------------------------------------------------


def cluster_by_similarity(data: np.ndarray, threshold: float = 0.7) -> LabelResult:
    """
    Single pass: each point joins the most similar existing cluster centroid
    when that similarity is at least threshold, otherwise starts a new one.
    """
    data = _check_data(data)
    centroids: list[np.ndarray] = []
    sizes: list[int] = []
    labels = np.empty(data.shape[0], dtype=np.int64)

    for i, point in enumerate(data):
        if centroids:
            scores = cosine_similarities(point, np.vstack(centroids))
            best = int(np.argmax(scores))
            if scores[best] >= threshold:
                sizes[best] += 1
                centroids[best] = centroids[best] + (point - centroids[best]) / sizes[best]
                labels[i] = best
                continue
        centroids.append(point.copy())
        sizes.append(1)
        labels[i] = len(centroids) - 1

    return LabelResult(labels=relabel(labels))
