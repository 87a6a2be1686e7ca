"""
Entity Linking

Links entities observed in a new document to entities already in the graph.

Flow:
    1. Embed the observed entity's name
    2. Search the entity vector namespace (filtered by type) for existing
       entities at or above the similarity threshold (0.85 by default)
    3. Hydrate hits from the graph, keeping score order
    4. Merge into the best candidate, or create a new entity

Merging never discards information: the entity's document_ids gain the
new document (order kept, no duplicates) and additional_context gains a
per-document entry holding the observation. Existing properties stay.

Example:
    >>> linker = EntityLinker(embeddings, RemoteVectorService(client, "entities"), repository)
    >>> entity, merged = await linker.link_entity(ObservedEntity(name="Ada Lovelace", type="Person"), "doc-7")
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from vector_intel.embedding import EmbeddingService
from vector_intel.remote import EntityRepository, RemoteVectorService
from vector_intel.types import (
    Entity,
    EntityLinkCandidate,
    EntitySearchResult,
    NetworkMetadata,
    ObservedEntity,
    SocialStructure,
    VectorRecord,
)

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.85
DEFAULT_TOP_K = 5
NETWORK_METADATA_TYPE = "NetworkMetadata"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EntityLinker:
    """
    Semantic entity search, link candidates and merge-on-link.

    Args:
        embeddings: EmbeddingService used to embed entity names
        vectors: RemoteVectorService bound to the entity namespace
        repository: EntityRepository for graph reads and writes
        threshold: Minimum similarity for a merge
        top_k: Candidates considered per observation
    """

    def __init__(
        self,
        embeddings: EmbeddingService,
        vectors: RemoteVectorService,
        repository: EntityRepository,
        *,
        threshold: float = SIMILARITY_THRESHOLD,
        top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.embeddings = embeddings
        self.vectors = vectors
        self.repository = repository
        self.threshold = threshold
        self.top_k = top_k

    def should_merge(self, score: float) -> bool:
        return score >= self.threshold

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def semantic_search(
        self,
        text: str,
        top_k: int = 10,
        min_similarity: float = 0.7,
        entity_type: str | None = None,
    ) -> list[EntitySearchResult]:
        """Find existing entities similar to text, hydrated from the graph in score order."""
        query = await self.embeddings.embed(text)
        hits = await self.vectors.search(
            query.vector,
            top_k=top_k,
            min_similarity=min_similarity,
            filter={"type": entity_type} if entity_type else None,
        )
        entities = {
            e.id: e for e in await self.repository.get_by_ids([hit.id for hit in hits])
        }
        return [
            EntitySearchResult(entity=entities[hit.id], score=hit.score, distance=hit.distance)
            for hit in hits
            if hit.id in entities
        ]

    async def find_link_candidates(
        self,
        candidate: ObservedEntity,
        document_id: str,
    ) -> list[EntityLinkCandidate]:
        """Existing entities the observation could be linked to, best first."""
        results = await self.semantic_search(
            candidate.name,
            top_k=self.top_k,
            min_similarity=self.threshold,
            entity_type=candidate.type,
        )
        logger.debug(
            "%d link candidates for %r in %s", len(results), candidate.name, document_id
        )
        return [
            EntityLinkCandidate(
                existing_entity=result.entity,
                new_entity=candidate,
                similarity_score=result.score,
                should_merge=self.should_merge(result.score),
            )
            for result in results
        ]

    # -------------------------------------------------------------------------
    # Merge / Link
    # -------------------------------------------------------------------------

    async def merge_with_document(
        self,
        entity_id: str,
        document_id: str,
        candidate: ObservedEntity,
    ) -> Entity | None:
        """
        Record that document_id also mentions entity_id.

        Returns:
            The updated entity, or None when entity_id does not exist
        """
        existing = await self.repository.get_by_id(entity_id)
        if existing is None:
            return None

        properties: dict[str, Any] = dict(existing.properties)

        document_ids = properties.get("document_ids")
        document_ids = list(document_ids) if isinstance(document_ids, list) else []
        if document_id not in document_ids:
            document_ids.append(document_id)
        properties["document_ids"] = document_ids

        context = properties.get("additional_context")
        context = dict(context) if isinstance(context, dict) else {}
        context[document_id] = candidate.model_dump(exclude_none=True)
        properties["additional_context"] = context

        return await self.repository.update(entity_id, {"properties": properties})

    async def link_entity(
        self,
        candidate: ObservedEntity,
        document_id: str,
    ) -> tuple[Entity, bool]:
        """
        Merge the observation into the best matching entity, or create one.

        Returns:
            (entity, merged) where merged is False for a newly created entity
        """
        for link in await self.find_link_candidates(candidate, document_id):
            if not link.should_merge:
                continue
            merged = await self.merge_with_document(
                link.existing_entity.id, document_id, candidate
            )
            if merged is not None:
                logger.info(
                    "Linked %r to %s (score %.3f)",
                    candidate.name, merged.id, link.similarity_score,
                )
                return merged, True

        entity = await self.repository.create(
            Entity(
                id=str(uuid.uuid4()),
                type=candidate.type,
                name=candidate.name,
                properties={
                    **candidate.descriptive_properties(),
                    "document_ids": [document_id],
                    "additional_context": {
                        document_id: candidate.model_dump(exclude_none=True)
                    },
                },
                document_id=document_id,
            )
        )

        embedding = await self.embeddings.embed(candidate.name)
        await self.vectors.upsert(
            [
                VectorRecord(
                    id=entity.id,
                    vector=embedding.vector,
                    text=entity.name,
                    metadata={
                        "entityId": entity.id,
                        "type": entity.type,
                        "name": entity.name,
                        "documentId": document_id,
                    },
                )
            ]
        )
        logger.info("Created entity %s for %r", entity.id, candidate.name)
        return entity, False

    # -------------------------------------------------------------------------
    # Network metadata
    # -------------------------------------------------------------------------

    async def store_network_metadata(
        self,
        document_id: str,
        power_dynamics: list[Any] | None,
        social_structure: SocialStructure | None,
        entity_id_map: dict[str, str],
    ) -> Entity:
        timestamp = _now_iso()
        return await self.repository.create(
            Entity(
                id=f"network_{document_id}_{int(time.time() * 1000)}",
                type=NETWORK_METADATA_TYPE,
                name=f"network_{document_id}",
                properties={
                    "document_id": document_id,
                    "power_dynamics": power_dynamics,
                    "social_structure": (
                        social_structure.model_dump() if social_structure else None
                    ),
                    "entity_mapping": dict(entity_id_map),
                    "timestamp": timestamp,
                },
                document_id=document_id,
                created_at=timestamp,
                updated_at=timestamp,
            )
        )

    async def get_network_metadata(self, document_id: str) -> NetworkMetadata:
        """Latest stored network metadata, or an empty record when none exists."""
        page = await self.repository.query(
            type=NETWORK_METADATA_TYPE, filters={"documentId": document_id}, limit=1
        )
        props = page.items[0].properties if page.items else {}
        return NetworkMetadata(
            document_id=props.get("document_id", document_id),
            entity_mapping=props.get("entity_mapping") or {},
            timestamp=props.get("timestamp") or _now_iso(),
            power_dynamics=props.get("power_dynamics"),
            social_structure=props.get("social_structure"),
        )
