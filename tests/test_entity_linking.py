"""Tests for EntityLinker: semantic search, merge-on-link and network metadata."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from vector_intel.resolution import EntityLinker
from vector_intel.types import (
    EmbeddingVector,
    Entity,
    ObservedEntity,
    PaginatedEntities,
    SocialStructure,
    VectorSearchResult,
)

ADA = Entity(
    id="e-ada",
    type="Person",
    name="Ada Lovelace",
    properties={"role": "mathematician", "document_ids": ["doc-1"]},
    document_id="doc-1",
)


def make_linker(hits=None, entities=None, threshold=0.85):
    embeddings = MagicMock()
    embeddings.embed = AsyncMock(
        side_effect=lambda text: EmbeddingVector(text=text, vector=[1.0, 0.0, 0.0], model_version="t")
    )

    vectors = MagicMock()
    vectors.search = AsyncMock(return_value=hits or [])
    vectors.upsert = AsyncMock(side_effect=lambda records, metadata=None: [r.id for r in records])

    store = {e.id: e for e in entities or []}
    repository = MagicMock()
    repository.get_by_ids = AsyncMock(side_effect=lambda ids: [store[i] for i in ids if i in store])
    repository.get_by_id = AsyncMock(side_effect=lambda i: store.get(i))

    async def update(entity_id, updates):
        store[entity_id] = store[entity_id].model_copy(update=updates)
        return store[entity_id]

    repository.update = AsyncMock(side_effect=update)
    repository.create = AsyncMock(side_effect=lambda entity: entity)

    linker = EntityLinker(embeddings, vectors, repository, threshold=threshold, top_k=5)
    return linker, embeddings, vectors, repository


class TestSemanticSearch:
    """Test search hydration."""

    @pytest.mark.asyncio
    async def test_hydrates_in_score_order(self):
        """Hits are hydrated in score order and missing entities dropped."""
        bob = Entity(id="e-bob", type="Person", name="Bob")
        hits = [
            VectorSearchResult(id="e-bob", score=0.95),
            VectorSearchResult(id="e-gone", score=0.9),
            VectorSearchResult(id="e-ada", score=0.8, distance=0.2),
        ]
        linker, _, vectors, _ = make_linker(hits, [ADA, bob])

        results = await linker.semantic_search("someone", top_k=3, min_similarity=0.5, entity_type="Person")

        assert [r.entity.id for r in results] == ["e-bob", "e-ada"]
        assert results[1].distance == 0.2
        vectors.search.assert_awaited_once_with(
            [1.0, 0.0, 0.0], top_k=3, min_similarity=0.5, filter={"type": "Person"}
        )

    @pytest.mark.asyncio
    async def test_no_type_filter(self):
        linker, _, vectors, _ = make_linker()
        assert await linker.semantic_search("x") == []
        assert vectors.search.await_args.kwargs["filter"] is None


class TestLinkCandidates:
    """Test candidate generation."""

    @pytest.mark.asyncio
    async def test_candidates_use_name_and_type(self):
        """Candidates embed the name and filter by type."""
        linker, embeddings, vectors, _ = make_linker([VectorSearchResult(id="e-ada", score=0.9)], [ADA])
        observed = ObservedEntity(name="Ada", type="Person")

        candidates = await linker.find_link_candidates(observed, "doc-2")

        assert len(candidates) == 1
        assert candidates[0].should_merge
        assert candidates[0].similarity_score == 0.9
        embeddings.embed.assert_awaited_once_with("Ada")
        assert vectors.search.await_args.kwargs["min_similarity"] == 0.85
        assert vectors.search.await_args.kwargs["filter"] == {"type": "Person"}

    def test_threshold_boundary(self):
        """A score equal to the threshold merges."""
        linker, *_ = make_linker()
        assert linker.should_merge(0.85)
        assert not linker.should_merge(0.8499)


class TestMergeWithDocument:
    """Test additive merges."""

    @pytest.mark.asyncio
    async def test_merge_adds_document_and_context(self):
        """Merging adds the document and context without losing properties."""
        linker, _, _, repository = make_linker(entities=[ADA])
        observed = ObservedEntity(name="Ada", type="Person", description="Analyst", importance=0.9)

        merged = await linker.merge_with_document("e-ada", "doc-2", observed)

        assert merged.properties["role"] == "mathematician"
        assert merged.properties["document_ids"] == ["doc-1", "doc-2"]
        assert merged.properties["additional_context"]["doc-2"] == {
            "name": "Ada",
            "type": "Person",
            "description": "Analyst",
            "importance": 0.9,
        }
        assert merged.id == "e-ada"

    @pytest.mark.asyncio
    async def test_merge_is_idempotent_for_document_ids(self):
        """Merging the same document twice keeps one reference."""
        linker, *_ = make_linker(entities=[ADA])
        observed = ObservedEntity(name="Ada", type="Person")

        await linker.merge_with_document("e-ada", "doc-2", observed)
        merged = await linker.merge_with_document("e-ada", "doc-2", observed)

        assert merged.properties["document_ids"] == ["doc-1", "doc-2"]

    @pytest.mark.asyncio
    async def test_merge_missing_entity(self):
        """Merging into an unknown entity returns None."""
        linker, _, _, repository = make_linker()
        assert await linker.merge_with_document("ghost", "doc-2", ObservedEntity(name="x", type="y")) is None
        repository.update.assert_not_awaited()


class TestLinkEntity:
    """Test merge-or-create."""

    @pytest.mark.asyncio
    async def test_merges_above_threshold(self):
        """A strong candidate is merged into."""
        linker, _, vectors, repository = make_linker([VectorSearchResult(id="e-ada", score=0.92)], [ADA])

        entity, merged = await linker.link_entity(ObservedEntity(name="Ada L.", type="Person"), "doc-3")

        assert merged
        assert entity.id == "e-ada"
        assert "doc-3" in entity.properties["document_ids"]
        repository.create.assert_not_awaited()
        vectors.upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_below_threshold(self):
        """A weak candidate leads to a new entity and vector."""
        linker, _, vectors, repository = make_linker([VectorSearchResult(id="e-ada", score=0.6)], [ADA])
        observed = ObservedEntity(name="Charles Babbage", type="Person", traits=["inventor"])

        entity, merged = await linker.link_entity(observed, "doc-3")

        assert not merged
        assert entity.id != "e-ada"
        assert entity.name == "Charles Babbage"
        assert entity.document_id == "doc-3"
        assert entity.properties["traits"] == ["inventor"]
        assert entity.properties["document_ids"] == ["doc-3"]
        assert "doc-3" in entity.properties["additional_context"]

        (records,), _ = vectors.upsert.await_args
        assert records[0].id == entity.id
        assert records[0].text == "Charles Babbage"
        assert records[0].metadata == {
            "entityId": entity.id,
            "type": "Person",
            "name": "Charles Babbage",
            "documentId": "doc-3",
        }

    @pytest.mark.asyncio
    async def test_creates_when_candidate_vanished(self):
        linker, _, _, repository = make_linker([VectorSearchResult(id="e-ada", score=0.99)], [ADA])
        repository.get_by_id = AsyncMock(return_value=None)

        entity, merged = await linker.link_entity(ObservedEntity(name="Ada", type="Person"), "doc-4")

        assert not merged
        repository.create.assert_awaited_once()


class TestNetworkMetadata:
    """Test network metadata storage and retrieval."""

    @pytest.mark.asyncio
    async def test_store(self):
        """Network metadata is stored as a NetworkMetadata entity."""
        linker, _, _, repository = make_linker()
        structure = SocialStructure(centrality={"e-ada": 0.8}, clusters=[["e-ada", "e-bob"]])

        entity = await linker.store_network_metadata(
            "doc-1", [{"from": "e-ada", "to": "e-bob"}], structure, {"Ada": "e-ada"}
        )

        assert entity.type == "NetworkMetadata"
        assert entity.id.startswith("network_doc-1_")
        assert entity.document_id == "doc-1"
        assert entity.properties["entity_mapping"] == {"Ada": "e-ada"}
        assert entity.properties["social_structure"]["centrality"] == {"e-ada": 0.8}
        assert entity.properties["timestamp"] == entity.created_at

    @pytest.mark.asyncio
    async def test_get_existing(self):
        linker, _, _, repository = make_linker()
        stored = Entity(
            id="network_doc-1_1",
            type="NetworkMetadata",
            name="network_doc-1",
            properties={
                "document_id": "doc-1",
                "entity_mapping": {"Ada": "e-ada"},
                "timestamp": "2024-01-01T00:00:00+00:00",
                "social_structure": {"centrality": {"e-ada": 1.0}, "clusters": []},
            },
        )
        repository.query = AsyncMock(return_value=PaginatedEntities(
            items=[stored], total=1, page=1, page_size=1, has_more=False
        ))

        metadata = await linker.get_network_metadata("doc-1")

        assert metadata.entity_mapping == {"Ada": "e-ada"}
        assert metadata.timestamp == "2024-01-01T00:00:00+00:00"
        assert metadata.social_structure.centrality == {"e-ada": 1.0}
        repository.query.assert_awaited_once_with(
            type="NetworkMetadata", filters={"documentId": "doc-1"}, limit=1
        )

    @pytest.mark.asyncio
    async def test_get_missing_returns_empty(self):
        """Missing metadata yields an empty record."""
        linker, _, _, repository = make_linker()
        repository.query = AsyncMock(return_value=PaginatedEntities(
            items=[], total=0, page=1, page_size=1, has_more=False
        ))

        metadata = await linker.get_network_metadata("doc-9")

        assert metadata.document_id == "doc-9"
        assert metadata.entity_mapping == {}
        assert metadata.timestamp
