"""
Vector Similarity

Cosine similarity, pairwise similarity matrices, centroids and score summaries.

cosine_similarity(a, b) = dot(a, b) / (|a| * |b|), 0 when either magnitude
is 0, clipped to [-1, 1]. Vectors of different length raise
DimensionMismatchError.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from scipy.spatial.distance import cdist

from vector_intel.errors import DimensionMismatchError
from vector_intel.types import SimilarityStats

VectorLike = Sequence[float] | np.ndarray


def _as_array(vector: VectorLike) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity of two equal-length vectors."""
    va, vb = _as_array(a), _as_array(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatchError(va.shape[0], vb.shape[0])

    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / magnitude, -1.0, 1.0))


def cosine_similarities(query: VectorLike, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of one query against every row of a matrix.

    Args:
        query: Vector of length d
        matrix: n x d array

    Returns:
        Array of n similarities; rows (or a query) with zero magnitude score 0
    """
    q = _as_array(query)
    m = np.asarray(matrix, dtype=np.float64)
    if m.size == 0:
        return np.zeros(0)
    if m.ndim != 2 or m.shape[1] != q.shape[0]:
        actual = m.shape[1] if m.ndim == 2 else m.shape[-1]
        raise DimensionMismatchError(q.shape[0], actual)

    norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, dots / np.where(norms > 0, norms, 1.0), 0.0)
    return np.clip(scores, -1.0, 1.0)


def similarity_matrix(vectors: Sequence[VectorLike] | np.ndarray) -> np.ndarray:
    """
    Compute pairwise cosine similarity matrix.

    Uses scipy's optimized cdist function for performance.

    Args:
        vectors: n x d embedding vectors

    Returns:
        n x n similarity matrix where S[i,j] = cosine_sim(v[i], v[j])
    """
    arr = np.asarray(vectors, dtype=np.float64)
    if arr.size == 0:
        return np.zeros((0, 0))
    # cdist returns distance (1 - similarity); zero vectors come back as nan
    similarity = 1 - cdist(arr, arr, metric="cosine")
    similarity = np.nan_to_num(similarity, nan=0.0)
    np.fill_diagonal(similarity, 1.0)
    return np.clip(similarity, -1.0, 1.0)


def centroid(vectors: Sequence[VectorLike] | np.ndarray) -> np.ndarray:
    """Component-wise mean of a non-empty set of vectors."""
    arr = np.asarray(vectors, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] == 0:
        raise ValueError("centroid requires at least one vector")
    return arr.mean(axis=0)


def stack_vectors(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Stack vectors into an n x d matrix, enforcing one dimension."""
    if not vectors:
        return np.zeros((0, 0))
    expected = len(vectors[0])
    for vector in vectors:
        if len(vector) != expected:
            raise DimensionMismatchError(expected, len(vector))
    return np.asarray(vectors, dtype=np.float64)


def similarity_stats(similarities: Sequence[float] | np.ndarray) -> SimilarityStats:
    """Summarize a set of similarity scores; an empty set yields all zeros."""
    arr = np.asarray(similarities, dtype=np.float64)
    if arr.size == 0:
        return SimilarityStats()
    return SimilarityStats(
        count=int(arr.size),
        mean=float(arr.mean()),
        median=float(np.median(arr)),
        min=float(arr.min()),
        max=float(arr.max()),
        std_dev=float(arr.std()),
    )


# (lower bound, description), highest first
SIMILARITY_BANDS = (
    (0.9, "Nearly identical content"),
    (0.8, "Very similar meaning"),
    (0.7, "Similar topics and concepts"),
    (0.6, "Related content"),
)


def similarity_reason(score: float) -> str:
    for bound, reason in SIMILARITY_BANDS:
        if score >= bound:
            return reason
    return "Somewhat related"
