"""
LanceDB Storage

Persistent vector table used by VectorStore.
"""

from vector_intel.storage.lancedb.indices import VectorIndex

__all__ = ["VectorIndex"]
