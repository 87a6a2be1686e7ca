"""Tests for IntelConfig."""

from pathlib import Path

import pytest

from vector_intel.config import IntelConfig

ENV_VARS = [
    "VECINTEL_API_KEY",
    "VECINTEL_BASE_URL",
    "VECINTEL_TIMEOUT",
    "VECINTEL_RATE_LIMIT",
    "VECINTEL_EMBEDDING_PROVIDER",
    "VECINTEL_MODEL_DIR",
    "VECINTEL_MODEL_URL",
    "VECINTEL_MODEL_SHA256",
    "VECINTEL_CACHE_REMOTE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Test built-in defaults."""

    def test_defaults(self):
        """Test built-in default values."""
        config = IntelConfig()
        assert config.remote_base_url == "http://localhost:8080"
        assert config.remote_api_key is None
        assert config.remote_rate_limit_per_minute == 60
        assert config.circuit_failure_threshold == 5
        assert config.circuit_cooldown == 60.0
        assert config.circuit_success_threshold == 3
        assert config.embedding_dimensions == 384
        assert config.cache_memory_size == 1000
        assert config.cache_ttl == 7 * 24 * 60 * 60
        assert config.linking_similarity_threshold == 0.85
        assert config.local_mode

    def test_unknown_option(self):
        """Unknown keyword options are rejected."""
        with pytest.raises(ValueError, match="Unknown configuration option"):
            IntelConfig(not_a_setting=1)


class TestEnvironment:
    """Test VECINTEL_* environment overrides."""

    def test_env_values(self, monkeypatch):
        """VECINTEL_* variables override defaults."""
        monkeypatch.setenv("VECINTEL_BASE_URL", "https://vectors.example.com")
        monkeypatch.setenv("VECINTEL_API_KEY", "secret")
        monkeypatch.setenv("VECINTEL_TIMEOUT", "12.5")
        monkeypatch.setenv("VECINTEL_RATE_LIMIT", "120")
        monkeypatch.setenv("VECINTEL_MODEL_DIR", "/tmp/models")
        monkeypatch.setenv("VECINTEL_CACHE_REMOTE", "false")

        config = IntelConfig()

        assert config.remote_base_url == "https://vectors.example.com"
        assert config.remote_api_key == "secret"
        assert config.remote_timeout == 12.5
        assert config.remote_rate_limit_per_minute == 120
        assert config.embedding_model_dir == Path("/tmp/models")
        assert not config.cache_remote_enabled
        assert not config.local_mode

    def test_explicit_beats_env(self, monkeypatch):
        monkeypatch.setenv("VECINTEL_EMBEDDING_PROVIDER", "remote")
        assert IntelConfig(embedding_provider="hashing").embedding_provider == "hashing"


class TestLocalMode:
    """Test local (unauthenticated) mode detection."""

    @pytest.mark.parametrize(
        "url,key,expected",
        [
            ("http://localhost:8080", "key", True),
            ("http://127.0.0.1:9000", "key", True),
            ("https://vectors.example.com", None, True),
            ("https://vectors.example.com", "key", False),
        ],
    )
    def test_local_mode(self, url, key, expected):
        assert IntelConfig(remote_base_url=url, remote_api_key=key).local_mode is expected


class TestFiles:
    """Test TOML load and save."""

    def test_from_file_sections(self, tmp_path):
        """Sections are flattened into prefixed options."""
        path = tmp_path / "vector_intel.toml"
        path.write_text(
            "[remote]\n"
            'base_url = "https://vectors.example.com"\n'
            "timeout = 10.0\n"
            'services = ["vector", "graph"]\n'
            "\n"
            "[embedding]\n"
            'provider = "hashing"\n'
            'model_dir = "/opt/models"\n'
            "\n"
            "[cache]\n"
            "memory_size = 5000\n"
        )

        config = IntelConfig.from_file(path)

        assert config.remote_base_url == "https://vectors.example.com"
        assert config.remote_timeout == 10.0
        assert config.remote_services == ("vector", "graph")
        assert config.embedding_provider == "hashing"
        assert config.embedding_model_dir == Path("/opt/models")
        assert config.cache_memory_size == 5000

    def test_from_file_flat_keys(self, tmp_path):
        path = tmp_path / "flat.toml"
        path.write_text("store_default_top_k = 3\n")
        assert IntelConfig.from_file(path).store_default_top_k == 3

    def test_from_file_unknown_key(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[cache]\nbogus = 1\n")
        with pytest.raises(ValueError):
            IntelConfig.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            IntelConfig.from_file(tmp_path / "nope.toml")

    def test_round_trip(self, tmp_path):
        """to_file output loads back, without the API key."""
        original = IntelConfig(
            remote_base_url="https://vectors.example.com",
            remote_api_key="never-written",
            embedding_provider="remote",
            cache_ttl=60.0,
            clustering_random_seed=7,
            linking_namespace='ents "quoted"',
        )
        path = tmp_path / "out" / "config.toml"
        original.to_file(path)

        assert "never-written" not in path.read_text()

        loaded = IntelConfig.from_file(path)
        assert loaded.remote_base_url == original.remote_base_url
        assert loaded.remote_api_key is None
        assert loaded.embedding_provider == "remote"
        assert loaded.cache_ttl == 60.0
        assert loaded.clustering_random_seed == 7
        assert loaded.linking_namespace == 'ents "quoted"'
        assert loaded.remote_services == original.remote_services
        assert loaded.embedding_model_dir == original.embedding_model_dir


class TestWithOverrides:
    """Test copy-with-overrides."""

    def test_copies_and_overrides(self):
        """with_overrides copies without mutating the source."""
        base = IntelConfig(cache_memory_size=10, remote_api_key="k", remote_base_url="https://x.example")
        derived = base.with_overrides(embedding_provider="hashing")

        assert derived.embedding_provider == "hashing"
        assert derived.cache_memory_size == 10
        assert derived.remote_api_key == "k"
        assert not derived.local_mode
        assert base.embedding_provider == "local"

    def test_unknown_override(self):
        with pytest.raises(ValueError):
            IntelConfig().with_overrides(bogus=True)
