"""Utility modules: similarity math and term extraction."""

from vector_intel.utils.similarity import (
    centroid,
    cosine_similarities,
    cosine_similarity,
    similarity_matrix,
    similarity_reason,
    similarity_stats,
    stack_vectors,
)
from vector_intel.utils.text import common_keywords, extract_terms, top_terms

__all__ = [
    "centroid",
    "cosine_similarity",
    "cosine_similarities",
    "similarity_matrix",
    "similarity_reason",
    "similarity_stats",
    "stack_vectors",
    "common_keywords",
    "extract_terms",
    "top_terms",
]
