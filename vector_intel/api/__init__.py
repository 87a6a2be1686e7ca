"""
Public API

VectorIntel: composition root wiring client, cache, embeddings, store,
clustering and entity linking.
"""

from vector_intel.api.intel import VectorIntel

__all__ = ["VectorIntel"]
