"""
Embedding Cache

Modules:
    memory: Bounded LRU used for in-memory tiers
    local: DuckDB persistent tier
    remote: Shared remote tier
    tiered: MultiTierEmbeddingCache (memory -> local -> remote)
"""

from vector_intel.cache.local import LocalEmbeddingStore, cache_key
from vector_intel.cache.memory import LRUCache
from vector_intel.cache.remote import RemoteEmbeddingStore
from vector_intel.cache.tiered import MultiTierEmbeddingCache

__all__ = [
    "LRUCache",
    "LocalEmbeddingStore",
    "RemoteEmbeddingStore",
    "MultiTierEmbeddingCache",
    "cache_key",
]
