"""
Remote Services

Typed wrappers over the remote vector/graph endpoints, all routed through
RemoteClient.

Modules:
    vectors: RemoteVectorService (namespace-scoped upsert/search/delete)
    graph: GraphService and CypherQueryBuilder
    entities: EntityRepository (Entity CRUD over the graph)
"""

from vector_intel.remote.entities import EntityRepository
from vector_intel.remote.graph import CypherQueryBuilder, GraphService
from vector_intel.remote.vectors import RemoteVectorService, validate_records

__all__ = [
    "RemoteVectorService",
    "GraphService",
    "CypherQueryBuilder",
    "EntityRepository",
    "validate_records",
]
