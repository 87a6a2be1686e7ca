"""
Passage Search

Similar passages, cross-document links and paragraph link suggestions over
the local vector store.
"""

from vector_intel.search.passages import PassageSearch

__all__ = ["PassageSearch"]
