"""
Entity Types

Graph Models:
    - Entity: A node in the remote entity graph
    - GraphNode: Raw node returned by a graph query

Linking Models:
    - ObservedEntity: An entity mention observed in a new document
    - EntityLinkCandidate: Transient merge decision (never persisted)
    - EntitySearchResult: Semantic search hit hydrated into an Entity
    - NetworkMetadata: Per-document social-network annotations
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Entity(BaseModel):
    """
    A persisted entity in the remote graph.

    Attributes:
        id: Unique identifier
        type: Entity type label (e.g. "Person", "Organization")
        name: Display name
        properties: Free-form properties; merges add document_ids and
            additional_context without discarding existing keys
        document_id: Document that first introduced the entity
    """

    id: str
    type: str
    name: str
    properties: dict[str, Any] = Field(default_factory=dict)
    embedding: list[float] | None = None
    document_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class GraphNode(BaseModel):
    """Node as returned by POST /v1/graph/query."""

    id: str | None = None
    labels: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)


class ObservedEntity(BaseModel):
    """
    An entity observed in a document, before linking.

    Optional descriptive fields are carried into the per-document context
    map when the observation is merged into an existing entity.
    """

    name: str
    type: str
    description: str | None = None
    traits: list[str] | None = None
    development: str | None = None
    importance: float | None = None
    mentions: int | None = None
    significance: Literal["high", "medium", "low"] | None = None

    def descriptive_properties(self) -> dict[str, Any]:
        """Properties for a new Entity built from this observation."""
        return self.model_dump(exclude={"name", "type"}, exclude_none=True)


class EntityLinkCandidate(BaseModel):
    """One possible link between an observation and an existing entity."""

    existing_entity: Entity
    new_entity: ObservedEntity
    similarity_score: float
    should_merge: bool

    model_config = ConfigDict(frozen=True)


class EntitySearchResult(BaseModel):
    entity: Entity
    score: float
    distance: float | None = None


class PaginatedEntities(BaseModel):
    items: list[Entity]
    total: int
    page: int
    page_size: int
    has_more: bool


class SocialStructure(BaseModel):
    centrality: dict[str, float] = Field(default_factory=dict)
    clusters: list[list[str]] = Field(default_factory=list)


class NetworkMetadata(BaseModel):
    """Social-network annotations stored alongside a document's entities."""

    document_id: str
    entity_mapping: dict[str, str] = Field(default_factory=dict)
    timestamp: str
    power_dynamics: list[Any] | None = None
    social_structure: SocialStructure | None = None
