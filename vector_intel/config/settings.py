"""
IntelConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> intel = VectorIntel("./data")

    >>> # Explicit configuration
    >>> config = IntelConfig(
    ...     remote_base_url="https://vectors.example.com",
    ...     embedding_provider="remote",
    ... )
    >>> intel = VectorIntel("./data", config=config)

    >>> # From config file
    >>> config = IntelConfig.from_file("./vector_intel.toml")

Environment Variables:
    VECINTEL_BASE_URL - Remote vector/graph service base URL
    VECINTEL_API_KEY - Remote service API key (omit for local instances)
    VECINTEL_TIMEOUT - Per-call timeout in seconds
    VECINTEL_RATE_LIMIT - Max remote requests per minute
    VECINTEL_EMBEDDING_PROVIDER - Embedding provider name
    VECINTEL_MODEL_DIR - Directory for downloaded model artifacts
    VECINTEL_MODEL_URL - ONNX model download URL
    VECINTEL_MODEL_SHA256 - Expected SHA-256 of the ONNX model
    VECINTEL_CACHE_REMOTE - "0"/"false" disables the shared remote cache tier
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

# TOML support: tomllib is built-in for Python 3.11+, use tomli for 3.10
try:
    import tomllib

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomllib.load(f))

except ImportError:
    import tomli

    def _load_toml(path: Path) -> dict[str, Any]:
        with open(path, "rb") as f:
            return cast(dict[str, Any], tomli.load(f))


_MINILM_BASE = "https://huggingface.co/sentence-transformers/all-MiniLM-L6-v2/resolve/main"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class IntelConfig:
    """Configuration for the vector intelligence subsystem."""

    # === Remote Service ===

    remote_base_url: str = "http://localhost:8080"
    """Base URL of the remote vector/graph service"""

    remote_api_key: str | None = None
    """API key; not needed for local (localhost) instances"""

    remote_timeout: float = 30.0
    """Per-call timeout in seconds"""

    remote_retry_attempts: int = 3
    """Attempts per request before the last error is surfaced"""

    remote_retry_delay: float = 1.0
    """Base backoff delay in seconds (doubled each attempt)"""

    remote_rate_limit_per_minute: int = 60
    """Max requests per sliding 60 s window"""

    remote_cache_enabled: bool = True
    """Cache successful GET responses"""

    remote_cache_ttl: float = 300.0
    """Response cache TTL in seconds"""

    remote_services: tuple[str, ...] = ("vector", "graph", "rag", "entity", "cluster")
    """Services probed by health_check()"""

    circuit_failure_threshold: int = 5
    """Consecutive failures that open the breaker"""

    circuit_cooldown: float = 60.0
    """Seconds the breaker stays open before allowing a half-open probe"""

    circuit_success_threshold: int = 3
    """Consecutive half-open successes needed to close the breaker"""

    # === Embedding Configuration ===

    embedding_provider: str = "local"
    """Embedding provider: "local" (ONNX), "remote", "hashing" """

    embedding_model: str = "all-MiniLM-L6-v2"
    """Embedding model name"""

    embedding_model_version: str = "onnx-minilm-l6-v2"
    """Version tag used in cache keys; change it when the model changes"""

    embedding_dimensions: int = 384
    """Embedding vector dimensions"""

    embedding_model_url: str = f"{_MINILM_BASE}/onnx/model.onnx"
    """ONNX model download URL"""

    embedding_vocab_url: str = f"{_MINILM_BASE}/vocab.txt"
    """WordPiece vocabulary download URL"""

    embedding_model_sha256: str | None = None
    """Optional SHA-256 of the model file"""

    embedding_vocab_sha256: str | None = None
    """Optional SHA-256 of the vocabulary file"""

    embedding_model_dir: Path = Path.home() / ".cache" / "vector_intel" / "models"
    """Where downloaded model artifacts live"""

    embedding_max_sequence_length: int = 128
    """Token limit per text (including [CLS]/[SEP])"""

    embedding_batch_size: int = 32
    """Texts per inference batch"""

    embedding_concurrency: int = 4
    """Max concurrent embedding batches / remote calls"""

    embedding_fallback: bool = True
    """Fall back to the hashing provider if the primary model cannot load"""

    # === Embedding Cache ===

    cache_memory_size: int = 1000
    """Entries held in the in-memory LRU tier"""

    cache_ttl: float = 7 * 24 * 60 * 60.0
    """Retention window for cached embeddings in seconds (7 days)"""

    cache_sweep_interval: float = 3600.0
    """Seconds between background sweeps of expired persistent entries"""

    cache_remote_enabled: bool = True
    """Use the shared remote store as the third cache tier"""

    # === Vector Store ===

    store_cache_items: int = 10000
    """Vectors mirrored in the store's hot-read LRU"""

    store_slow_search_ms: float = 50.0
    """Searches slower than this are logged as warnings"""

    store_default_threshold: float = 0.3
    """Default minimum similarity for find_similar"""

    store_default_top_k: int = 10
    """Default result count for find_similar"""

    # === Clustering ===

    clustering_max_iterations: int = 100
    """k-means iteration cap"""

    clustering_min_similarity: float = 0.3
    """Density clustering neighbourhood: eps = 1 - min_similarity"""

    clustering_min_points: int = 3
    """Density clustering minimum neighbourhood size"""

    clustering_similarity_threshold: float = 0.7
    """Threshold for greedy similarity grouping"""

    clustering_random_seed: int | None = None
    """Seed for k-means++ and reseeding (None = nondeterministic)"""

    # === Entity Linking ===

    linking_similarity_threshold: float = 0.85
    """Minimum similarity for an existing entity to be a merge target"""

    linking_top_k: int = 5
    """Candidates retrieved per linking decision"""

    linking_namespace: str = "entities"
    """Remote vector namespace holding entity embeddings"""

    # === Model Loading ===

    model_load_retries: int = 3
    """Download attempts per artifact"""

    model_load_retry_delay: float = 1.0
    """Base download backoff delay in seconds"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        import os

        self.remote_api_key = os.getenv("VECINTEL_API_KEY")

        if base_url := os.getenv("VECINTEL_BASE_URL"):
            self.remote_base_url = base_url
        if timeout := os.getenv("VECINTEL_TIMEOUT"):
            self.remote_timeout = float(timeout)
        if rate_limit := os.getenv("VECINTEL_RATE_LIMIT"):
            self.remote_rate_limit_per_minute = int(rate_limit)
        if provider := os.getenv("VECINTEL_EMBEDDING_PROVIDER"):
            self.embedding_provider = provider
        if model_dir := os.getenv("VECINTEL_MODEL_DIR"):
            self.embedding_model_dir = Path(model_dir)
        if model_url := os.getenv("VECINTEL_MODEL_URL"):
            self.embedding_model_url = model_url
        if checksum := os.getenv("VECINTEL_MODEL_SHA256"):
            self.embedding_model_sha256 = checksum
        if remote_cache := os.getenv("VECINTEL_CACHE_REMOTE"):
            self.cache_remote_enabled = remote_cache.strip().lower() in _TRUE_VALUES

    @property
    def local_mode(self) -> bool:
        """True when talking to a self-hosted instance (no auth header)."""
        return (
            not self.remote_api_key
            or "localhost" in self.remote_base_url
            or "127.0.0.1" in self.remote_base_url
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "IntelConfig":
        """
        Load configuration from TOML file.

        The TOML file can contain any configuration option as a key.
        Nested sections are flattened with underscores.

        Example TOML:
            [remote]
            base_url = "https://vectors.example.com"
            timeout = 10.0

            [embedding]
            provider = "remote"

            [cache]
            memory_size = 5000

        Args:
            path: Path to TOML configuration file

        Returns:
            IntelConfig instance with values from file

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        section_mapping = {
            "remote": "remote_",
            "circuit": "circuit_",
            "embedding": "embedding_",
            "cache": "cache_",
            "store": "store_",
            "clustering": "clustering_",
            "linking": "linking_",
            "model_load": "model_load_",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    flat_config[f"{prefix}{key}"] = value

        # Also support flat top-level keys
        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        if "embedding_model_dir" in flat_config:
            flat_config["embedding_model_dir"] = Path(flat_config["embedding_model_dir"])
        if "remote_services" in flat_config:
            flat_config["remote_services"] = tuple(flat_config["remote_services"])

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "IntelConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        The API key is never written; set VECINTEL_API_KEY instead.

        Args:
            path: Path to write TOML configuration file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, Any]] = {
            "remote": {
                "base_url": self.remote_base_url,
                "timeout": self.remote_timeout,
                "retry_attempts": self.remote_retry_attempts,
                "retry_delay": self.remote_retry_delay,
                "rate_limit_per_minute": self.remote_rate_limit_per_minute,
                "cache_enabled": self.remote_cache_enabled,
                "cache_ttl": self.remote_cache_ttl,
                "services": list(self.remote_services),
            },
            "circuit": {
                "failure_threshold": self.circuit_failure_threshold,
                "cooldown": self.circuit_cooldown,
                "success_threshold": self.circuit_success_threshold,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "model_version": self.embedding_model_version,
                "dimensions": self.embedding_dimensions,
                "model_url": self.embedding_model_url,
                "vocab_url": self.embedding_vocab_url,
                "model_sha256": self.embedding_model_sha256,
                "vocab_sha256": self.embedding_vocab_sha256,
                "model_dir": str(self.embedding_model_dir),
                "max_sequence_length": self.embedding_max_sequence_length,
                "batch_size": self.embedding_batch_size,
                "concurrency": self.embedding_concurrency,
                "fallback": self.embedding_fallback,
            },
            "cache": {
                "memory_size": self.cache_memory_size,
                "ttl": self.cache_ttl,
                "sweep_interval": self.cache_sweep_interval,
                "remote_enabled": self.cache_remote_enabled,
            },
            "store": {
                "cache_items": self.store_cache_items,
                "slow_search_ms": self.store_slow_search_ms,
                "default_threshold": self.store_default_threshold,
                "default_top_k": self.store_default_top_k,
            },
            "clustering": {
                "max_iterations": self.clustering_max_iterations,
                "min_similarity": self.clustering_min_similarity,
                "min_points": self.clustering_min_points,
                "similarity_threshold": self.clustering_similarity_threshold,
                "random_seed": self.clustering_random_seed,
            },
            "linking": {
                "similarity_threshold": self.linking_similarity_threshold,
                "top_k": self.linking_top_k,
                "namespace": self.linking_namespace,
            },
            "model_load": {
                "retries": self.model_load_retries,
                "retry_delay": self.model_load_retry_delay,
            },
        }

        # Build TOML string manually (avoids extra dependency)
        lines = ["# vector-intel configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if value is None:
                    continue
                lines.append(f"{key} = {_toml_value(value)}")
            lines.append("")

        lines.extend([
            "# The API key should be set via the VECINTEL_API_KEY environment variable",
            "",
        ])

        path.write_text("\n".join(lines))

    def with_overrides(self, **kwargs: Any) -> "IntelConfig":
        """Return new config with specified overrides."""
        new_config = IntelConfig.__new__(IntelConfig)
        for key in dir(self):
            if key.startswith("_") or key == "local_mode":
                continue
            if not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config


def _toml_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
