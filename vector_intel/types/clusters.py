"""
Clustering Types

Config Models:
    - ClusterConfig: Algorithm selection and parameters
    - GNNConfig: Remote graph-neural model hyperparameters
    - GNNClusteringOptions: Per-call options for remote GNN clustering

Result Models:
    - Cluster: One group of member ids with centroid and cohesion
    - ClusteringResult: Partition of the input into clusters + outliers
    - ClusterAnalysis: Per-cluster statistics and representatives
    - Theme: A large cluster summarized by central passages and shared terms
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

ClusterAlgorithm = Literal["kmeans", "hierarchical", "dbscan", "gnn"]


class GNNConfig(BaseModel):
    """Hyperparameters for training a remote graph-neural clustering model."""

    layers: int = 2
    hidden_dimensions: int = 128
    activation_function: Literal["relu", "tanh", "sigmoid"] = "relu"
    dropout_rate: float = 0.1
    learning_rate: float = 0.01
    epochs: int = 100


class GNNClusteringOptions(BaseModel):
    """Options forwarded to the remote GNN clustering endpoint."""

    use_attention: bool = True
    aggregation_method: Literal["mean", "max", "sum"] = "mean"
    node_features: dict[str, list[float]] | None = None
    edge_weights: bool = True


class ClusterConfig(BaseModel):
    """
    Clustering request configuration.

    Attributes:
        algorithm: kmeans (default), hierarchical, dbscan, or gnn
        num_clusters: Target k for kmeans/hierarchical (None = estimate)
        min_similarity: Density neighbourhood, eps = 1 - min_similarity
        min_points: Density core-point threshold
        max_iterations: k-means iteration cap
        random_seed: Seed for k-means++ (None = nondeterministic)
        gnn: Remote GNN options
    """

    algorithm: ClusterAlgorithm = "kmeans"
    num_clusters: int | None = Field(default=None, ge=1)
    min_similarity: float = 0.3
    min_points: int = Field(default=3, ge=1)
    max_iterations: int = Field(default=100, ge=1)
    random_seed: int | None = None
    gnn: GNNClusteringOptions = Field(default_factory=GNNClusteringOptions)


class Cluster(BaseModel):
    """
    A cluster of vector ids.

    Invariant: size == len(members).
    """

    id: str
    members: list[str]
    centroid: list[float] = Field(default_factory=list)
    size: int = 0
    cohesion: float = 1.0
    label: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _sync_size(self) -> "Cluster":
        if self.size != len(self.members):
            self.size = len(self.members)
        return self


class ClusteringMetadata(BaseModel):
    """How a clustering result was produced."""

    algorithm: str
    execution_time_ms: float = 0.0
    convergence: bool | None = None
    iterations: int | None = None


class ClusteringResult(BaseModel):
    """
    Partition of the input ids.

    Local algorithms guarantee sum(cluster.size) + len(outliers) equals the
    number of input ids, with no id in more than one place.
    """

    clusters: list[Cluster]
    outliers: list[str] = Field(default_factory=list)
    silhouette_score: float | None = None
    total_clusters: int = 0
    metadata: ClusteringMetadata

    @model_validator(mode="after")
    def _sync_total(self) -> "ClusteringResult":
        self.total_clusters = len(self.clusters)
        return self

    @property
    def covered(self) -> int:
        return sum(c.size for c in self.clusters) + len(self.outliers)


class ClusterStatistics(BaseModel):
    size: int
    avg_similarity: float
    median_similarity: float = 0.0
    min_similarity: float
    max_similarity: float
    variance: float


class ClusterAnalysis(BaseModel):
    """Statistics and representative members of one cluster."""

    cluster_id: str
    statistics: ClusterStatistics
    representatives: list[str]


class Theme(BaseModel):
    """
    A recurring topic across a document set.

    Attributes:
        cluster: The cluster the theme was drawn from
        representative_texts: Member texts closest to the cluster centroid
        keywords: Terms most frequent across member texts
        confidence: Cluster cohesion
    """

    cluster: Cluster
    representative_texts: list[str]
    keywords: list[str] = Field(default_factory=list)
    confidence: float
