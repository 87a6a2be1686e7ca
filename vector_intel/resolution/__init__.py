"""
Entity Resolution

Links observed entities to existing graph entities by semantic similarity.
"""

from vector_intel.resolution.entity_linking import EntityLinker

__all__ = ["EntityLinker"]
