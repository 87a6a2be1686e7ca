"""
Vector Storage

Modules:
    lancedb/: Persistent LanceDB table (VectorIndex)
    vector_store: VectorStore (dimension checks, LRU mirror, cosine search)
"""

from vector_intel.storage.lancedb import VectorIndex
from vector_intel.storage.vector_store import VectorStore

__all__ = ["VectorIndex", "VectorStore"]
