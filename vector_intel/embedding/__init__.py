"""
Embedding Service

Cache-checked single and batch embedding with lazy, at-most-once provider
initialization and optional degraded-mode fallback.
"""

from vector_intel.embedding.service import EmbeddingService, InitState

__all__ = ["EmbeddingService", "InitState"]
