"""Tests for clustering algorithms, metrics and ClusterEngine."""

from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from vector_intel.clustering import ClusterEngine
from vector_intel.clustering.algorithms import (
    NOISE,
    cluster_by_similarity,
    dbscan,
    estimate_optimal_clusters,
    hierarchical,
    kmeans,
    relabel,
)
from vector_intel.clustering.metrics import cohesion, silhouette_score
from vector_intel.errors import ClusteringError, RemoteOperationError
from vector_intel.types import Cluster, ClusterConfig, GNNConfig, StoredVector

GROUP_A = [[1.0, 0.0], [0.99, 0.1], [0.98, 0.15]]
GROUP_B = [[0.0, 1.0], [0.1, 0.99], [0.15, 0.98]]
TWO_GROUPS = np.array(GROUP_A + GROUP_B)


def fake_store(
    vectors: dict[str, list[float]],
    documents: dict[str, str] | None = None,
    texts: dict[str, str] | None = None,
):
    documents = documents or {}
    texts = texts or {}
    store = MagicMock()

    def stored(i: str) -> StoredVector:
        return StoredVector(
            id=i,
            document_id=documents.get(i, "doc-1"),
            text=texts.get(i, i),
            vector=vectors[i],
            model_version="t",
        )

    async def get_many(ids):
        return {i: stored(i) for i in ids if i in vectors}

    async def get_by_document(document_id):
        return [stored(i) for i in vectors if documents.get(i, "doc-1") == document_id]

    store.get_many = AsyncMock(side_effect=get_many)
    store.get_by_document = AsyncMock(side_effect=get_by_document)
    return store


def two_group_vectors() -> dict[str, list[float]]:
    ids = ["a1", "a2", "a3", "b1", "b2", "b3"]
    return dict(zip(ids, TWO_GROUPS.tolist()))


class TestHelpers:
    """Test cluster-count estimation and relabeling."""

    def test_estimate_optimal_clusters(self):
        """k is clamped to [3, 10] and never exceeds n."""
        assert estimate_optimal_clusters(8) == 3
        assert estimate_optimal_clusters(200) == 10
        assert estimate_optimal_clusters(10_000) == 10
        assert estimate_optimal_clusters(2) == 2

    def test_estimate_rejects_empty(self):
        """Estimating k for zero points raises."""
        with pytest.raises(ClusteringError):
            estimate_optimal_clusters(0)

    def test_relabel_by_first_appearance(self):
        """Labels are renumbered in order of first appearance, noise kept."""
        labels = relabel(np.array([5, 5, NOISE, 2, 5, 2]))
        assert labels.tolist() == [0, 0, NOISE, 1, 0, 1]


class TestKMeans:
    """Test k-means."""

    def test_separates_two_groups(self):
        """Two well separated groups land in two clusters."""
        result = kmeans(TWO_GROUPS, 2, rng=np.random.default_rng(0))
        labels = result.labels.tolist()
        assert labels[:3] == [0, 0, 0]
        assert labels[3:] == [1, 1, 1]
        assert result.converged

    def test_seed_is_deterministic(self):
        """The same seed yields the same partition."""
        data = np.random.default_rng(3).normal(size=(30, 4))
        first = kmeans(data, 4, rng=np.random.default_rng(42))
        second = kmeans(data, 4, rng=np.random.default_rng(42))
        assert first.labels.tolist() == second.labels.tolist()

    def test_k_larger_than_n(self):
        result = kmeans(np.array([[0.0, 1.0], [1.0, 0.0]]), 5, rng=np.random.default_rng(0))
        assert sorted(result.labels.tolist()) == [0, 1]

    def test_every_point_assigned(self):
        """k-means never leaves a point unassigned."""
        data = np.random.default_rng(1).normal(size=(25, 3))
        labels = kmeans(data, 3, rng=np.random.default_rng(1)).labels
        assert len(labels) == 25
        assert (labels >= 0).all()

    def test_identical_points(self):
        """Coincident points do not break k-means++ seeding."""
        result = kmeans(np.ones((4, 2)), 2, rng=np.random.default_rng(0))
        assert len(result.labels) == 4

    def test_empty_input_raises(self):
        """Empty input is rejected."""
        with pytest.raises(ClusteringError):
            kmeans(np.zeros((0, 2)), 2)


class TestHierarchical:
    """Test agglomerative clustering."""

    def test_cuts_at_k(self):
        """Agglomeration stops at k clusters."""
        labels = hierarchical(TWO_GROUPS, 2).labels.tolist()
        assert labels == [0, 0, 0, 1, 1, 1]

    def test_k_equal_n_keeps_singletons(self):
        """With k == n every point is its own cluster."""
        labels = hierarchical(TWO_GROUPS, 6).labels.tolist()
        assert labels == [0, 1, 2, 3, 4, 5]

    def test_k_one_merges_everything(self):
        assert set(hierarchical(TWO_GROUPS, 1).labels.tolist()) == {0}

    def test_single_point(self):
        assert hierarchical(np.array([[1.0, 2.0]]), 3).labels.tolist() == [0]


class TestDBSCAN:
    """Test density clustering."""

    def test_groups_and_noise(self):
        """Dense groups become clusters and the isolated point is noise."""
        data = np.vstack([TWO_GROUPS, [[-1.0, -1.0]]])
        labels = dbscan(data, min_similarity=0.9, min_points=2).labels.tolist()
        assert labels == [0, 0, 0, 1, 1, 1, NOISE]

    def test_everything_noise_when_sparse(self):
        """Orthogonal points are all noise."""
        data = np.eye(3)
        labels = dbscan(data, min_similarity=0.9, min_points=2).labels.tolist()
        assert labels == [NOISE, NOISE, NOISE]

    def test_border_point_joins_core_cluster(self):
        data = np.array([[1.0, 0.0], [0.99, 0.05], [0.995, 0.02], [0.8, 0.6]])
        labels = dbscan(data, min_similarity=0.8, min_points=3).labels.tolist()
        assert labels[:3] == [0, 0, 0]
        assert labels[3] in (0, NOISE)


    def test_exact_similarity_one(self):
        """With min_similarity 1.0 only identical directions are neighbours."""
        data = np.array([[1.0, 0.0], [2.0, 0.0], [0.0, 1.0]])
        labels = dbscan(data, min_similarity=1.0, min_points=2).labels.tolist()
        assert labels == [0, 0, NOISE]


class TestClusterBySimilarity:
    """Test greedy similarity grouping."""

    def test_two_groups(self):
        """Greedy grouping finds both groups."""
        labels = cluster_by_similarity(TWO_GROUPS, threshold=0.9).labels.tolist()
        assert labels == [0, 0, 0, 1, 1, 1]

    def test_threshold_one_isolates_distinct_points(self):
        labels = cluster_by_similarity(TWO_GROUPS, threshold=1.0).labels.tolist()
        assert len(set(labels)) == 6


class TestMetrics:
    """Test silhouette and cohesion."""

    def test_silhouette_well_separated(self):
        """Well separated clusters score high."""
        score = silhouette_score(TWO_GROUPS, np.array([0, 0, 0, 1, 1, 1]))
        assert 0.5 < score <= 1.0

    def test_silhouette_bounds_random(self):
        """Random partitions stay within [-1, 1]."""
        rng = np.random.default_rng(5)
        for _ in range(10):
            data = rng.normal(size=(12, 3))
            labels = rng.integers(0, 3, size=12)
            if len(set(labels.tolist())) < 2:
                continue
            assert -1.0 <= silhouette_score(data, labels) <= 1.0

    def test_silhouette_ignores_noise(self):
        """Noise points do not change the score."""
        data = np.vstack([TWO_GROUPS, [[50.0, 50.0]]])
        labels = np.array([0, 0, 0, 1, 1, 1, NOISE])
        assert silhouette_score(data, labels) == pytest.approx(
            silhouette_score(TWO_GROUPS, labels[:6])
        )

    def test_silhouette_requires_two_clusters(self):
        """One cluster is rejected."""
        with pytest.raises(ClusteringError):
            silhouette_score(TWO_GROUPS, np.zeros(6, dtype=int))

    def test_silhouette_all_singletons_undefined(self):
        """All-singleton partitions are rejected."""
        with pytest.raises(ClusteringError):
            silhouette_score(TWO_GROUPS[:2], np.array([0, 1]))

    def test_silhouette_empty(self):
        with pytest.raises(ClusteringError):
            silhouette_score(np.zeros((0, 2)), np.array([]))

    def test_cohesion(self):
        """Cohesion is mean pairwise cosine, 1.0 for a single member."""
        assert cohesion(np.array([[1.0, 0.0]])) == 1.0
        assert cohesion(np.array([[1.0, 0.0], [2.0, 0.0]])) == pytest.approx(1.0)
        assert cohesion(np.array([[1.0, 0.0], [0.0, 1.0]])) == pytest.approx(0.0)


class TestClusterEngine:
    """Test ClusterEngine over a fake store."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("algorithm", ["kmeans", "hierarchical", "dbscan"])
    async def test_result_covers_every_id(self, algorithm):
        """Every id lands in exactly one cluster or in outliers."""
        engine = ClusterEngine(fake_store(two_group_vectors()))
        ids = ["a1", "a2", "a3", "b1", "b2", "b3", "ghost"]
        config = ClusterConfig(
            algorithm=algorithm, num_clusters=2, min_similarity=0.9, min_points=2, random_seed=0
        )

        result = await engine.cluster(ids, config)

        placed = [m for c in result.clusters for m in c.members] + result.outliers
        assert sorted(placed) == sorted(ids)
        assert result.covered == len(ids)
        assert "ghost" in result.outliers
        assert result.total_clusters == 2
        assert result.metadata.algorithm == algorithm

    @pytest.mark.asyncio
    async def test_kmeans_centroid_is_member_mean(self):
        """Cluster centroids are the mean of their members."""
        vectors = two_group_vectors()
        engine = ClusterEngine(fake_store(vectors))
        result = await engine.cluster(
            list(vectors), ClusterConfig(algorithm="kmeans", num_clusters=2, random_seed=1)
        )
        for cluster in result.clusters:
            expected = np.mean([vectors[m] for m in cluster.members], axis=0)
            np.testing.assert_allclose(cluster.centroid, expected)
            assert cluster.size == len(cluster.members)
        assert [c.id for c in result.clusters] == ["cluster-0", "cluster-1"]
        assert result.silhouette_score is not None
        assert -1.0 <= result.silhouette_score <= 1.0

    @pytest.mark.asyncio
    async def test_single_cluster_has_no_silhouette(self):
        """A single cluster leaves the silhouette unset."""
        vectors = two_group_vectors()
        engine = ClusterEngine(fake_store(vectors))
        result = await engine.cluster(list(vectors), ClusterConfig(algorithm="hierarchical", num_clusters=1))
        assert result.total_clusters == 1
        assert result.silhouette_score is None

    @pytest.mark.asyncio
    async def test_default_k_is_estimated(self):
        vectors = {f"v{i}": v for i, v in enumerate(np.random.default_rng(2).normal(size=(20, 3)).tolist())}
        engine = ClusterEngine(fake_store(vectors), random_seed=3)
        result = await engine.cluster(list(vectors), ClusterConfig(algorithm="kmeans"))
        assert result.total_clusters <= estimate_optimal_clusters(20)
        assert result.covered == 20

    @pytest.mark.asyncio
    async def test_all_ids_missing(self):
        """Ids with no stored vector are all outliers."""
        engine = ClusterEngine(fake_store({}))
        result = await engine.cluster(["x", "y"])
        assert result.clusters == []
        assert result.outliers == ["x", "y"]

    @pytest.mark.asyncio
    async def test_empty_ids_raise(self):
        with pytest.raises(ClusteringError):
            await ClusterEngine(fake_store({})).cluster([])

    @pytest.mark.asyncio
    async def test_duplicate_ids_raise(self):
        """Duplicate ids are rejected."""
        with pytest.raises(ClusteringError):
            await ClusterEngine(fake_store(two_group_vectors())).cluster(["a1", "a1"])

    @pytest.mark.asyncio
    async def test_cluster_by_similarity(self):
        vectors = two_group_vectors()
        engine = ClusterEngine(fake_store(vectors), similarity_threshold=0.9)
        result = await engine.cluster_by_similarity(list(vectors))
        assert [sorted(c.members) for c in result.clusters] == [["a1", "a2", "a3"], ["b1", "b2", "b3"]]
        assert result.metadata.algorithm == "similarity"

    @pytest.mark.asyncio
    async def test_analyze_cluster(self):
        """Statistics are ordered and the far member is not representative."""
        vectors = two_group_vectors()
        engine = ClusterEngine(fake_store(vectors))
        analysis = await engine.analyze_cluster(Cluster(id="c", members=["a1", "a2", "a3", "b1"]))

        assert analysis.statistics.size == 4
        assert analysis.statistics.min_similarity <= analysis.statistics.avg_similarity
        assert analysis.statistics.avg_similarity <= analysis.statistics.max_similarity
        assert len(analysis.representatives) == 3
        assert "b1" not in analysis.representatives
        assert analysis.statistics.median_similarity <= analysis.statistics.max_similarity

    @pytest.mark.asyncio
    async def test_analyze_single_member(self):
        engine = ClusterEngine(fake_store(two_group_vectors()))
        analysis = await engine.analyze_cluster(Cluster(id="c", members=["a1"]))
        assert analysis.statistics.avg_similarity == 1.0
        assert analysis.representatives == ["a1"]


class TestDocumentClustering:
    """Test clustering by document and theme discovery."""

    @pytest.mark.asyncio
    async def test_cluster_documents_collects_document_vectors(self):
        vectors = two_group_vectors()
        documents = {"a1": "doc-a", "a2": "doc-a", "a3": "doc-a", "b1": "doc-b", "b2": "doc-b", "b3": "doc-c"}
        store = fake_store(vectors, documents)
        engine = ClusterEngine(store)

        result = await engine.cluster_documents(
            ["doc-a", "doc-b"], ClusterConfig(algorithm="hierarchical", num_clusters=2)
        )

        assert sorted(m for c in result.clusters for m in c.members) == ["a1", "a2", "a3", "b1", "b2"]
        assert result.covered == 5
        assert store.get_by_document.await_count == 2

    @pytest.mark.asyncio
    async def test_cluster_documents_without_vectors(self):
        """Documents with nothing stored cannot be clustered."""
        with pytest.raises(ClusteringError):
            await ClusterEngine(fake_store(two_group_vectors())).cluster_documents(["missing"])

    @pytest.mark.asyncio
    async def test_discover_themes(self):
        """Small clusters are dropped and themes are ordered by size."""
        vectors = {
            **two_group_vectors(),
            "a4": [0.97, 0.2],
            "lone": [-1.0, 0.0],
        }
        texts = {
            "a1": "quarterly revenue growth",
            "a2": "revenue growth outlook",
            "a3": "strong revenue quarter",
            "a4": "revenue guidance raised",
            "b1": "board election results",
            "b2": "board members elected",
            "b3": "annual board meeting",
            "lone": "unrelated footnote",
        }
        engine = ClusterEngine(fake_store(vectors, texts=texts))

        themes = await engine.discover_themes(
            ["doc-1"], config=ClusterConfig(algorithm="hierarchical", num_clusters=3)
        )

        assert [t.cluster.size for t in themes] == [4, 3]
        assert themes[0].keywords[0] == "revenue"
        assert themes[1].keywords[0] == "board"
        assert len(themes[0].representative_texts) == 3
        assert set(themes[0].representative_texts) <= {texts[m] for m in themes[0].cluster.members}
        assert themes[0].confidence == themes[0].cluster.cohesion


class TestGNNClustering:
    """Test remote GNN clustering and training."""

    @pytest.mark.asyncio
    async def test_gnn_cluster_posts_ids(self):
        """GNN clustering posts ids and options and parses the result."""
        client = MagicMock()
        client.post = AsyncMock(return_value={
            "success": True,
            "data": {
                "clusters": [{"id": "g0", "members": ["a", "b"]}],
                "outliers": ["c"],
                "metadata": {"algorithm": "gnn", "execution_time_ms": 12.0},
            },
        })
        engine = ClusterEngine(fake_store({}), client)

        result = await engine.cluster(["a", "b", "c"], ClusterConfig(algorithm="gnn"))

        assert result.total_clusters == 1
        assert result.clusters[0].size == 2
        assert result.outliers == ["c"]
        path, body = client.post.await_args.args
        assert path == "/v1/cluster/gnn"
        assert body["embedding_ids"] == ["a", "b", "c"]
        assert body["use_attention"] is True
        assert body["aggregation_method"] == "mean"

    @pytest.mark.asyncio
    async def test_training_sets_model_id(self):
        """Training stores the model id used by later GNN calls."""
        client = MagicMock()
        client.post = AsyncMock(side_effect=[
            {"success": True, "data": {"model_id": "gnn-7", "metadata": {"accuracy": 0.91}}},
            {"clusters": []},
        ])
        engine = ClusterEngine(fake_store({}), client)

        metadata = await engine.train_gnn_model(["a", "b"], GNNConfig(epochs=5), labels=[0, 1])
        assert metadata == {"accuracy": 0.91}
        assert engine.gnn_model_id == "gnn-7"

        train_body = client.post.await_args_list[0].args[1]
        assert train_body["config"]["epochs"] == 5
        assert train_body["validation_split"] == 0.2

        result = await engine.gnn_cluster(["a", "b"])
        assert client.post.await_args.args[1]["model_id"] == "gnn-7"
        assert result.metadata.algorithm == "gnn"

    @pytest.mark.asyncio
    async def test_failure_envelope_raises(self):
        """A success=false envelope raises RemoteOperationError."""
        client = MagicMock()
        client.post = AsyncMock(return_value={"success": False, "error": {"message": "model missing"}})
        engine = ClusterEngine(fake_store({}), client)
        with pytest.raises(RemoteOperationError, match="model missing"):
            await engine.gnn_cluster(["a"])

    @pytest.mark.asyncio
    async def test_labels_must_align(self):
        engine = ClusterEngine(fake_store({}), MagicMock())
        with pytest.raises(ClusteringError):
            await engine.train_gnn_model(["a", "b"], labels=[1])

    @pytest.mark.asyncio
    async def test_gnn_requires_client(self):
        """GNN clustering without a client raises."""
        engine = ClusterEngine(fake_store({}))
        with pytest.raises(ClusteringError):
            await engine.cluster(["a"], ClusterConfig(algorithm="gnn"))
