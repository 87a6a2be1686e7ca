"""
Cluster Engine

Clusters stored vectors by id.

    cluster(ids, config)
        kmeans / hierarchical / dbscan run locally on vectors read from the
        VectorStore; gnn delegates to POST /v1/cluster/gnn.
    cluster_documents(document_ids, config)
        cluster every stored vector of the given documents.
    discover_themes(document_ids, min_size)
        clusters of at least min_size members, largest first, each with
        its most central texts and most frequent terms.

Local results always cover the input: every id lands in exactly one
cluster or in outliers (density noise and ids without a stored vector).
Each cluster carries its member-mean centroid and cohesion; a silhouette
score is attached whenever there are at least two clusters and it is
defined.

Example:
    >>> engine = ClusterEngine(store, client)
    >>> result = await engine.cluster(ids, ClusterConfig(algorithm="dbscan", min_similarity=0.5))
    >>> assert result.covered == len(ids)
"""

from __future__ import annotations

import logging
import time
from typing import Any

import numpy as np

from vector_intel.client import RemoteClient
from vector_intel.clustering.algorithms import (
    LabelResult,
    cluster_by_similarity,
    dbscan,
    estimate_optimal_clusters,
    hierarchical,
    kmeans,
)
from vector_intel.clustering.metrics import cohesion, pairwise_similarities, silhouette_score
from vector_intel.errors import ClusteringError
from vector_intel.remote.vectors import unwrap
from vector_intel.storage import VectorStore
from vector_intel.types import (
    Cluster,
    ClusterAnalysis,
    ClusterConfig,
    ClusteringMetadata,
    ClusteringResult,
    ClusterStatistics,
    GNNClusteringOptions,
    GNNConfig,
    Theme,
)
from vector_intel.utils.similarity import cosine_similarities, similarity_stats
from vector_intel.utils.text import top_terms

logger = logging.getLogger(__name__)

REPRESENTATIVE_COUNT = 3
MIN_THEME_SIZE = 3
THEME_KEYWORDS = 5


class ClusterEngine:
    """
    Local and remote clustering of stored vectors.

    Args:
        store: VectorStore holding the vectors to cluster
        client: RemoteClient for gnn clustering (None disables it)
        similarity_threshold: Default threshold for cluster_by_similarity
        random_seed: Default seed when a ClusterConfig has none
    """

    def __init__(
        self,
        store: VectorStore,
        client: RemoteClient | None = None,
        *,
        similarity_threshold: float = 0.7,
        random_seed: int | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.similarity_threshold = similarity_threshold
        self.random_seed = random_seed
        self.gnn_model_id: str | None = None

    # -------------------------------------------------------------------------
    # Clustering
    # -------------------------------------------------------------------------

    async def cluster(
        self,
        embedding_ids: list[str],
        config: ClusterConfig | None = None,
    ) -> ClusteringResult:
        """
        Partition the given ids.

        Raises:
            ClusteringError: Empty or duplicate ids
            NetworkError / ClientError / CircuitOpenError: gnn remote failures
        """
        config = config or ClusterConfig()
        self._check_ids(embedding_ids)

        if config.algorithm == "gnn":
            return await self.gnn_cluster(embedding_ids, config.gnn)

        start = time.perf_counter()
        ids, data, missing = await self._load(embedding_ids)
        if not ids:
            logger.warning("No stored vectors for %d ids; all are outliers", len(embedding_ids))
            return self._empty_result(config.algorithm, missing, start)

        rng = np.random.default_rng(
            config.random_seed if config.random_seed is not None else self.random_seed
        )
        if config.algorithm == "kmeans":
            k = config.num_clusters or estimate_optimal_clusters(len(ids))
            labeled = kmeans(data, k, max_iterations=config.max_iterations, rng=rng)
        elif config.algorithm == "hierarchical":
            k = config.num_clusters or estimate_optimal_clusters(len(ids))
            labeled = hierarchical(data, k)
        elif config.algorithm == "dbscan":
            labeled = dbscan(
                data, min_similarity=config.min_similarity, min_points=config.min_points
            )
        else:
            raise ClusteringError(f"Unknown clustering algorithm: {config.algorithm}")

        return self._build_result(config.algorithm, ids, data, labeled, missing, start)

    async def cluster_by_similarity(
        self,
        embedding_ids: list[str],
        threshold: float | None = None,
    ) -> ClusteringResult:
        """Greedy grouping: each vector joins the first sufficiently similar centroid."""
        self._check_ids(embedding_ids)
        start = time.perf_counter()
        ids, data, missing = await self._load(embedding_ids)
        if not ids:
            return self._empty_result("similarity", missing, start)

        labeled = cluster_by_similarity(
            data, self.similarity_threshold if threshold is None else threshold
        )
        return self._build_result("similarity", ids, data, labeled, missing, start)

    async def cluster_documents(
        self,
        document_ids: list[str],
        config: ClusterConfig | None = None,
    ) -> ClusteringResult:
        """
        Cluster all stored vectors belonging to the given documents.

        Raises:
            ClusteringError: The documents have no stored vectors
        """
        embedding_ids = await self._document_vector_ids(document_ids)
        if not embedding_ids:
            raise ClusteringError(f"No stored vectors for documents {document_ids}")
        return await self.cluster(embedding_ids, config)

    async def discover_themes(
        self,
        document_ids: list[str],
        *,
        min_size: int = MIN_THEME_SIZE,
        config: ClusterConfig | None = None,
    ) -> list[Theme]:
        """Recurring topics across documents: clusters with at least min_size members."""
        result = await self.cluster_documents(document_ids, config)

        themes: list[Theme] = []
        for cluster in result.clusters:
            if cluster.size < min_size:
                continue
            found = await self.store.get_many(cluster.members)
            analysis = await self.analyze_cluster(cluster)
            themes.append(
                Theme(
                    cluster=cluster,
                    representative_texts=[found[m].text for m in analysis.representatives],
                    keywords=top_terms(
                        (found[m].text for m in cluster.members if m in found), THEME_KEYWORDS
                    ),
                    confidence=cluster.cohesion,
                )
            )

        themes.sort(key=lambda t: t.cluster.size, reverse=True)
        logger.info(
            "Discovered %d themes in %d documents (%d clusters)",
            len(themes), len(document_ids), len(result.clusters),
        )
        return themes

    async def _document_vector_ids(self, document_ids: list[str]) -> list[str]:
        ids: list[str] = []
        seen: set[str] = set()
        for document_id in document_ids:
            for vector in await self.store.get_by_document(document_id):
                if vector.id not in seen:
                    seen.add(vector.id)
                    ids.append(vector.id)
        return ids

    @staticmethod
    def _check_ids(embedding_ids: list[str]) -> None:
        if not embedding_ids:
            raise ClusteringError("Cannot cluster an empty id list")
        if len(set(embedding_ids)) != len(embedding_ids):
            raise ClusteringError("Embedding ids must be unique")

    async def _load(self, embedding_ids: list[str]) -> tuple[list[str], np.ndarray, list[str]]:
        found = await self.store.get_many(embedding_ids)
        ids = [i for i in embedding_ids if i in found]
        missing = [i for i in embedding_ids if i not in found]
        data = np.asarray([found[i].vector for i in ids], dtype=np.float64)
        return ids, data, missing

    def _build_result(
        self,
        algorithm: str,
        ids: list[str],
        data: np.ndarray,
        labeled: LabelResult,
        missing: list[str],
        start: float,
    ) -> ClusteringResult:
        labels = labeled.labels
        clusters: list[Cluster] = []
        for c in range(int(labels.max()) + 1 if len(labels) else 0):
            rows = np.flatnonzero(labels == c)
            if not len(rows):
                continue
            vectors = data[rows]
            clusters.append(
                Cluster(
                    id=f"cluster-{len(clusters)}",
                    members=[ids[i] for i in rows],
                    centroid=vectors.mean(axis=0).tolist(),
                    cohesion=cohesion(vectors),
                )
            )

        noise = [ids[i] for i in np.flatnonzero(labels < 0)]

        score: float | None = None
        if len(clusters) >= 2:
            try:
                score = silhouette_score(data, labels)
            except ClusteringError as e:
                logger.debug("Silhouette score undefined: %s", e)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s clustering: %d ids -> %d clusters, %d outliers in %.1fms",
            algorithm, len(ids) + len(missing), len(clusters), len(noise) + len(missing), elapsed_ms,
        )
        return ClusteringResult(
            clusters=clusters,
            outliers=noise + missing,
            silhouette_score=score,
            metadata=ClusteringMetadata(
                algorithm=algorithm,
                execution_time_ms=elapsed_ms,
                convergence=labeled.converged,
                iterations=labeled.iterations,
            ),
        )

    @staticmethod
    def _empty_result(algorithm: str, missing: list[str], start: float) -> ClusteringResult:
        return ClusteringResult(
            clusters=[],
            outliers=list(missing),
            metadata=ClusteringMetadata(
                algorithm=algorithm,
                execution_time_ms=(time.perf_counter() - start) * 1000,
            ),
        )

    # -------------------------------------------------------------------------
    # Remote GNN
    # -------------------------------------------------------------------------

    def _require_client(self) -> RemoteClient:
        if self.client is None:
            raise ClusteringError("GNN clustering requires a RemoteClient")
        return self.client

    async def gnn_cluster(
        self,
        embedding_ids: list[str],
        options: GNNClusteringOptions | None = None,
    ) -> ClusteringResult:
        client = self._require_client()
        options = options or GNNClusteringOptions()
        start = time.perf_counter()

        payload = await client.post(
            "/v1/cluster/gnn",
            {
                "embedding_ids": embedding_ids,
                "model_id": self.gnn_model_id,
                "use_attention": options.use_attention,
                "aggregation_method": options.aggregation_method,
                "node_features": options.node_features,
                "edge_weights": options.edge_weights,
            },
        )
        data: dict[str, Any] = dict(unwrap(payload, "GNN clustering") or {})
        data.setdefault("clusters", [])
        metadata = dict(data.get("metadata") or {})
        metadata.setdefault("algorithm", "gnn")
        metadata.setdefault("execution_time_ms", (time.perf_counter() - start) * 1000)
        data["metadata"] = metadata
        return ClusteringResult.model_validate(data)

    async def train_gnn_model(
        self,
        embedding_ids: list[str],
        gnn_config: GNNConfig | None = None,
        labels: list[int] | None = None,
        validation_split: float = 0.2,
    ) -> dict[str, Any]:
        """
        Train a remote GNN model. Later gnn clustering calls use its model_id.

        Returns:
            Model metadata reported by the service
        """
        client = self._require_client()
        if labels is not None and len(labels) != len(embedding_ids):
            raise ClusteringError("labels must align with embedding_ids")

        payload = await client.post(
            "/v1/cluster/gnn/train",
            {
                "embedding_ids": embedding_ids,
                "labels": labels,
                "config": (gnn_config or GNNConfig()).model_dump(),
                "validation_split": validation_split,
            },
        )
        data = unwrap(payload, "GNN training") or {}
        self.gnn_model_id = data.get("model_id")
        logger.info("Trained GNN model %s", self.gnn_model_id)
        return data.get("metadata") or {}

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    async def analyze_cluster(self, cluster: Cluster) -> ClusterAnalysis:
        """Pairwise similarity statistics and the members nearest the centroid."""
        found = await self.store.get_many(cluster.members)
        members = [m for m in cluster.members if m in found]
        if not members:
            raise ClusteringError(f"No stored vectors for cluster {cluster.id}")

        vectors = np.asarray([found[m].vector for m in members], dtype=np.float64)
        sims = pairwise_similarities(vectors) if len(members) > 1 else [1.0]
        stats = similarity_stats(sims)
        statistics = ClusterStatistics(
            size=len(members),
            avg_similarity=stats.mean,
            median_similarity=stats.median,
            min_similarity=stats.min,
            max_similarity=stats.max,
            variance=stats.std_dev**2,
        )

        center = vectors.mean(axis=0)
        closeness = cosine_similarities(center, vectors)
        order = np.argsort(-closeness, kind="stable")[:REPRESENTATIVE_COUNT]
        return ClusterAnalysis(
            cluster_id=cluster.id,
            statistics=statistics,
            representatives=[members[i] for i in order],
        )
