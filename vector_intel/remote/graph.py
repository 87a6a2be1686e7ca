"""
Remote Graph Service

Cypher queries against POST /v1/graph/query.

All user-supplied values travel as query parameters; CypherQueryBuilder
hands out $pN placeholders and sanitizes property keys and labels, which
cannot be parameterized.

Example:
    >>> builder = CypherQueryBuilder()
    >>> props = builder.properties({"name": "Ada", "role": "engineer"})
    >>> cypher = f"CREATE (n{CypherQueryBuilder.labels(['Person'])} {props}) RETURN n"
    >>> await graph.query(cypher, builder.params)
"""

from __future__ import annotations

import re
from typing import Any

from vector_intel.client import RemoteClient
from vector_intel.remote.vectors import unwrap
from vector_intel.types import GraphNode

GRAPH_QUERY_PATH = "/v1/graph/query"

_UNSAFE_KEY = re.compile(r"[^A-Za-z0-9_]")


class CypherQueryBuilder:
    """Collects parameters for one Cypher query."""

    def __init__(self) -> None:
        self.params: dict[str, Any] = {}
        self._counter = 0

    def add_param(self, value: Any) -> str:
        """Register a value and return its placeholder ($p0, $p1, ...)."""
        name = f"p{self._counter}"
        self._counter += 1
        self.params[name] = value
        return f"${name}"

    @staticmethod
    def escape_key(key: str) -> str:
        return _UNSAFE_KEY.sub("_", key)

    @classmethod
    def labels(cls, labels: list[str]) -> str:
        return "".join(f":{cls.escape_key(label)}" for label in labels)

    def properties(self, properties: dict[str, Any]) -> str:
        """Render a {key: $pN, ...} map literal; empty string when there are no properties."""
        parts = [
            f"{self.escape_key(key)}: {self.add_param(value)}"
            for key, value in properties.items()
        ]
        return "{" + ", ".join(parts) + "}" if parts else ""

    def where_equals(self, alias: str, filters: dict[str, Any]) -> str:
        """Render `alias.key = $pN AND ...`; empty string when there are no filters."""
        return " AND ".join(
            f"{alias}.{self.escape_key(key)} = {self.add_param(value)}"
            for key, value in filters.items()
        )

    def build(self, cypher: str) -> tuple[str, dict[str, Any]]:
        return cypher, dict(self.params)


def _as_nodes(rows: Any) -> list[GraphNode]:
    nodes: list[GraphNode] = []
    for row in rows or []:
        if isinstance(row, dict) and "properties" not in row and len(row) == 1:
            # {"n": {...}} rows keyed by the RETURN alias
            row = next(iter(row.values()))
        if isinstance(row, dict) and "properties" in row:
            nodes.append(GraphNode.model_validate(row))
        elif isinstance(row, dict):
            nodes.append(GraphNode(id=row.get("id"), properties=row))
    return nodes


class GraphService:
    """
    Thin Cypher client over the remote graph endpoint.

    Args:
        client: Shared RemoteClient
    """

    def __init__(self, client: RemoteClient) -> None:
        self.client = client

    async def query(
        self,
        cypher: str,
        params: dict[str, Any] | None = None,
        *,
        read_only: bool = False,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run a Cypher query. Returns the decoded result object."""
        payload = await self.client.post(
            GRAPH_QUERY_PATH,
            {"cypher": cypher, "parameters": params or {}, "readOnly": read_only},
            timeout=timeout,
        )
        data = unwrap(payload, "Graph query")
        if isinstance(data, list):
            return {"data": data}
        return data or {}

    async def query_nodes(self, cypher: str, params: dict[str, Any] | None = None) -> list[GraphNode]:
        result = await self.query(cypher, params)
        return _as_nodes(result.get("nodes") or result.get("data"))

    async def create_node(self, labels: list[str], properties: dict[str, Any]) -> GraphNode:
        builder = CypherQueryBuilder()
        props = builder.properties(properties)
        cypher, params = builder.build(
            f"CREATE (n{CypherQueryBuilder.labels(labels)} {props}) RETURN n"
        )
        nodes = await self.query_nodes(cypher, params)
        if not nodes:
            return GraphNode(labels=labels, properties=properties)
        return nodes[0]

    async def get_node(self, node_id: str) -> GraphNode | None:
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (n) WHERE n.id = {builder.add_param(node_id)} RETURN n"
        )
        nodes = await self.query_nodes(cypher, params)
        return nodes[0] if nodes else None

    async def delete_node(self, node_id: str) -> None:
        builder = CypherQueryBuilder()
        cypher, params = builder.build(
            f"MATCH (n) WHERE n.id = {builder.add_param(node_id)} DETACH DELETE n"
        )
        await self.query(cypher, params)

    async def get_neighbors(self, node_id: str, depth: int = 1) -> list[GraphNode]:
        builder = CypherQueryBuilder()
        depth = max(1, int(depth))
        cypher, params = builder.build(
            f"MATCH (n)-[*1..{depth}]-(m) WHERE n.id = {builder.add_param(node_id)} "
            "RETURN DISTINCT m"
        )
        return await self.query_nodes(cypher, params)
