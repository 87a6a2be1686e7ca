"""
Passage Search

Finds related passages in the local VectorStore.

    find_similar_passages(text)          passages similar to free text,
                                         excluding exact copies of it
    find_cross_document_links(doc_ids)   for every stored passage of the
                                         documents, its closest passages in
                                         other documents; each unordered
                                         pair reported once, best first
    suggest_links(paragraphs)            in-memory paragraph-to-paragraph
                                         suggestions with shared keywords

Every score carries a human-readable band from similarity_reason().

Example:
    >>> search = PassageSearch(embeddings, store)
    >>> links = await search.find_cross_document_links(["doc-1", "doc-2"], threshold=0.75)
"""

from __future__ import annotations

import logging

import numpy as np

from vector_intel.embedding import EmbeddingService
from vector_intel.storage import VectorStore
from vector_intel.types import LinkSuggestion, SimilarPassage
from vector_intel.utils.similarity import similarity_matrix, similarity_reason
from vector_intel.utils.text import common_keywords

logger = logging.getLogger(__name__)

PASSAGE_THRESHOLD = 0.6
LINK_THRESHOLD = 0.7
LINKS_PER_PASSAGE = 5
SUGGESTION_THRESHOLD = 0.6
MAX_SUGGESTIONS = 5
FREE_TEXT_SOURCE_ID = "source"


class PassageSearch:
    """
    Passage-level similarity over stored document vectors.

    Args:
        embeddings: EmbeddingService for free-text queries and suggestions
        store: VectorStore holding indexed passages
    """

    def __init__(self, embeddings: EmbeddingService, store: VectorStore) -> None:
        self.embeddings = embeddings
        self.store = store

    async def find_similar_passages(
        self,
        text: str,
        *,
        document_id: str | None = None,
        threshold: float = PASSAGE_THRESHOLD,
        top_k: int = 10,
    ) -> list[SimilarPassage]:
        """Stored passages similar to text; passages identical to text are skipped."""
        query = await self.embeddings.embed(text)
        # One extra in case the text itself is stored
        hits = await self.store.find_similar(
            query.vector, threshold=threshold, top_k=top_k + 1, document_id=document_id
        )
        passages = [
            SimilarPassage(
                source_id=FREE_TEXT_SOURCE_ID,
                target_id=hit.id,
                target_document_id=hit.document_id,
                target_paragraph_id=hit.paragraph_id,
                source_text=text,
                target_text=hit.text,
                score=hit.score,
                reason=similarity_reason(hit.score),
            )
            for hit in hits
            if hit.text != text
        ][:top_k]
        logger.debug("Found %d similar passages", len(passages))
        return passages

    async def find_cross_document_links(
        self,
        document_ids: list[str],
        *,
        threshold: float = LINK_THRESHOLD,
        per_passage: int = LINKS_PER_PASSAGE,
    ) -> list[SimilarPassage]:
        """
        Link passages of the given documents to similar passages elsewhere.

        Returns:
            Links sorted by descending score, one per unordered passage pair
        """
        links: list[SimilarPassage] = []
        for document_id in document_ids:
            for source in await self.store.get_by_document(document_id):
                hits = await self.store.find_similar(
                    source.vector,
                    threshold=threshold,
                    top_k=per_passage,
                    exclude_ids=[source.id],
                )
                links.extend(
                    SimilarPassage(
                        source_id=source.id,
                        target_id=hit.id,
                        source_document_id=source.document_id,
                        target_document_id=hit.document_id,
                        source_paragraph_id=source.paragraph_id,
                        target_paragraph_id=hit.paragraph_id,
                        source_text=source.text,
                        target_text=hit.text,
                        score=hit.score,
                        reason=similarity_reason(hit.score),
                    )
                    for hit in hits
                    if hit.document_id != document_id
                )

        links.sort(key=lambda link: link.score, reverse=True)
        seen: set[frozenset[str]] = set()
        unique: list[SimilarPassage] = []
        for link in links:
            pair = frozenset((link.source_id, link.target_id))
            if pair not in seen:
                seen.add(pair)
                unique.append(link)

        logger.info(
            "Found %d cross-document links across %d documents", len(unique), len(document_ids)
        )
        return unique

    async def suggest_links(
        self,
        paragraphs: dict[str, str],
        *,
        min_score: float = SUGGESTION_THRESHOLD,
        max_results: int = MAX_SUGGESTIONS,
    ) -> dict[str, list[LinkSuggestion]]:
        """
        Suggest links between paragraphs by embedding similarity.

        Args:
            paragraphs: paragraph id -> text
            min_score: Minimum similarity for a suggestion
            max_results: Suggestions per paragraph

        Returns:
            paragraph id -> suggestions (best first); paragraphs without any
            suggestion are absent
        """
        if len(paragraphs) < 2:
            return {}

        ids = list(paragraphs)
        batch = await self.embeddings.embed_batch([paragraphs[i] for i in ids])
        scores = similarity_matrix([e.vector for e in batch.embeddings])
        np.fill_diagonal(scores, -np.inf)

        suggestions: dict[str, list[LinkSuggestion]] = {}
        for row, source_id in enumerate(ids):
            candidates = np.flatnonzero(scores[row] >= min_score)
            order = candidates[np.argsort(-scores[row, candidates], kind="stable")][:max_results]
            if not len(order):
                continue
            suggestions[source_id] = [
                LinkSuggestion(
                    source_paragraph_id=source_id,
                    target_paragraph_id=ids[col],
                    score=float(scores[row, col]),
                    reason=similarity_reason(float(scores[row, col])),
                    keywords=common_keywords(paragraphs[source_id], paragraphs[ids[col]]),
                )
                for col in order
            ]
        return suggestions
