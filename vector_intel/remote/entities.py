"""
Entity Repository

CRUD for Entity nodes in the remote graph. Every value, including query
filters, is passed as a Cypher parameter; filter keys are sanitized with
CypherQueryBuilder.escape_key.

Entity.properties is stored as a JSON string on the node and decoded on
the way back.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from vector_intel.errors import EntityNotFoundError
from vector_intel.remote.graph import CypherQueryBuilder, GraphService
from vector_intel.types import Entity, GraphNode, PaginatedEntities

ENTITY_LABEL = "Entity"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def node_to_entity(node: GraphNode, include_embedding: bool = False) -> Entity:
    props = node.properties
    properties = props.get("properties") or {}
    if isinstance(properties, str):
        properties = json.loads(properties)
    return Entity(
        id=props.get("id") or node.id or "",
        type=props.get("type", ""),
        name=props.get("name", ""),
        properties=properties,
        embedding=props.get("embedding") if include_embedding else None,
        document_id=props.get("documentId"),
        created_at=props.get("created_at"),
        updated_at=props.get("updated_at"),
    )


class EntityRepository:
    """
    Entity persistence over GraphService.

    Args:
        graph: GraphService for the remote graph
    """

    def __init__(self, graph: GraphService) -> None:
        self.graph = graph

    async def create(self, entity: Entity) -> Entity:
        now = _now_iso()
        entity = entity.model_copy(
            update={"created_at": entity.created_at or now, "updated_at": entity.updated_at or now}
        )
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MERGE (e:{ENTITY_LABEL} {{id: {builder.add_param(entity.id)}}}) "
            f"SET e.type = {builder.add_param(entity.type)}, "
            f"e.name = {builder.add_param(entity.name)}, "
            f"e.properties = {builder.add_param(json.dumps(entity.properties))}, "
            f"e.documentId = {builder.add_param(entity.document_id)}, "
            f"e.created_at = {builder.add_param(entity.created_at)}, "
            f"e.updated_at = {builder.add_param(entity.updated_at)} "
            "RETURN e"
        )
        await self.graph.query(cypher, params)
        return entity

    async def get_by_id(self, entity_id: str) -> Entity | None:
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (e:{ENTITY_LABEL} {{id: {builder.add_param(entity_id)}}}) RETURN e"
        )
        nodes = await self.graph.query_nodes(cypher, params)
        return node_to_entity(nodes[0]) if nodes else None

    async def get_by_ids(self, entity_ids: list[str]) -> list[Entity]:
        """Fetch several entities; the result follows the order of entity_ids."""
        if not entity_ids:
            return []
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (e:{ENTITY_LABEL}) WHERE e.id IN {builder.add_param(entity_ids)} RETURN e"
        )
        found = {e.id: e for e in map(node_to_entity, await self.graph.query_nodes(cypher, params))}
        return [found[i] for i in entity_ids if i in found]

    async def update(self, entity_id: str, updates: dict[str, Any]) -> Entity:
        """
        Apply field updates to an existing entity. The id never changes.

        Raises:
            EntityNotFoundError: No entity with this id
        """
        existing = await self.get_by_id(entity_id)
        if existing is None:
            raise EntityNotFoundError(entity_id)

        fields = {k: v for k, v in updates.items() if k != "id"}
        updated = existing.model_copy(update={**fields, "updated_at": _now_iso()})

        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (e:{ENTITY_LABEL} {{id: {builder.add_param(entity_id)}}}) "
            f"SET e.type = {builder.add_param(updated.type)}, "
            f"e.name = {builder.add_param(updated.name)}, "
            f"e.properties = {builder.add_param(json.dumps(updated.properties))}, "
            f"e.updated_at = {builder.add_param(updated.updated_at)} "
            "RETURN e"
        )
        await self.graph.query(cypher, params)
        return updated

    async def delete(self, entity_id: str) -> None:
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (e:{ENTITY_LABEL} {{id: {builder.add_param(entity_id)}}}) DETACH DELETE e"
        )
        await self.graph.query(cypher, params)

    async def query(
        self,
        type: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int = 50,
        offset: int = 0,
        include_embeddings: bool = False,
    ) -> PaginatedEntities:
        """Page through entities, optionally restricted by type and node property filters."""
        limit = max(1, limit)
        offset = max(0, offset)
        conditions = dict(filters or {})
        if type:
            conditions["type"] = type

        builder = CypherQueryBuilder()
        where = builder.where_equals("e", conditions)
        where_clause = f" WHERE {where}" if where else ""
        match = f"MATCH (e:{ENTITY_LABEL}){where_clause}"

        page_params = dict(builder.params, offset=offset, limit=limit)
        nodes = await self.graph.query_nodes(
            f"{match} RETURN e SKIP $offset LIMIT $limit", page_params
        )
        count_result = await self.graph.query(f"{match} RETURN count(e) AS count", builder.params)
        total = int(count_result.get("count") or _first_count(count_result) or 0)

        return PaginatedEntities(
            items=[node_to_entity(n, include_embeddings) for n in nodes],
            total=total,
            page=offset // limit + 1,
            page_size=limit,
            has_more=offset + limit < total,
        )

    async def find_by_type(self, type: str, limit: int = 50) -> list[Entity]:
        return (await self.query(type=type, limit=limit)).items


def _first_count(result: dict[str, Any]) -> int | None:
    rows = result.get("data")
    if isinstance(rows, list) and rows and isinstance(rows[0], dict):
        value = rows[0].get("count")
        return int(value) if value is not None else None
    return None
