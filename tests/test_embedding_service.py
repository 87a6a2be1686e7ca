"""Tests for EmbeddingService initialization, caching and batching."""

import asyncio

import pytest

from vector_intel.cache import MultiTierEmbeddingCache
from vector_intel.embedding import EmbeddingService, InitState
from vector_intel.errors import DimensionMismatchError, ModelLoadError
from vector_intel.providers.base import EmbeddingProvider
from vector_intel.providers.embedding import HashingEmbeddingProvider


class FakeProvider(EmbeddingProvider):
    """Deterministic provider that records its calls."""

    def __init__(self, dimensions: int = 3, version: str = "fake-v1", init_error: Exception | None = None):
        self._dimensions = dimensions
        self._version = version
        self.init_error = init_error
        self.init_calls = 0
        self.embedded: list[list[str]] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "fake"

    @property
    def model_version(self) -> str:
        return self._version

    async def initialize(self) -> None:
        self.init_calls += 1
        await asyncio.sleep(0.01)
        if self.init_error is not None:
            raise self.init_error

    def _vector(self, text: str) -> list[float]:
        return [float(len(text)), 1.0, 0.0][: self._dimensions]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embedded.append(list(texts))
        return [self._vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.embedded.append([text])
        return self._vector(text)


def memory_cache() -> MultiTierEmbeddingCache:
    return MultiTierEmbeddingCache(local=None, remote=None, sweep_interval=0)


class TestInitialization:
    """Test single-flight initialization and fallback."""

    @pytest.mark.asyncio
    async def test_concurrent_initialize_runs_once(self):
        provider = FakeProvider()
        service = EmbeddingService(provider)
        await asyncio.gather(*(service.initialize() for _ in range(5)))
        assert provider.init_calls == 1
        assert service.state is InitState.READY
        assert service.is_ready

    @pytest.mark.asyncio
    async def test_failure_surfaces_and_allows_retry(self):
        error = ModelLoadError("https://x/model.onnx", "/tmp/model.onnx", attempts=3, reason="boom")
        provider = FakeProvider(init_error=error)
        service = EmbeddingService(provider)

        with pytest.raises(ModelLoadError):
            await service.initialize()
        assert service.state is InitState.FAILED

        provider.init_error = None
        await service.initialize()
        assert service.is_ready
        assert provider.init_calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_waiters_see_failure(self):
        provider = FakeProvider(init_error=RuntimeError("no model"))
        service = EmbeddingService(provider)
        results = await asyncio.gather(
            service.initialize(), service.initialize(), return_exceptions=True
        )
        assert all(isinstance(r, RuntimeError) for r in results)
        assert provider.init_calls == 1

    @pytest.mark.asyncio
    async def test_fallback_on_primary_failure(self):
        primary = FakeProvider(init_error=RuntimeError("no model"))
        fallback = HashingEmbeddingProvider(dimensions=3)
        service = EmbeddingService(primary, fallback=fallback)

        vector = await service.embed("hello")

        assert service.degraded
        assert service.provider is fallback
        assert vector.model_version == fallback.model_version
        assert len(vector.vector) == 3

    @pytest.mark.asyncio
    async def test_embed_initializes_lazily(self):
        provider = FakeProvider()
        service = EmbeddingService(provider)
        assert service.state is InitState.UNINITIALIZED
        await service.embed("x")
        assert service.is_ready


class TestEmbed:
    """Test single-text embedding with the cache."""

    @pytest.mark.asyncio
    async def test_second_call_is_cached(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, memory_cache())

        first = await service.embed("hello")
        second = await service.embed("hello")

        assert first.vector == second.vector == [5.0, 1.0, 0.0]
        assert provider.embedded == [["hello"]]
        assert (await service.get_cache_stats()).memory_hits == 1

    @pytest.mark.asyncio
    async def test_vector_carries_model_version(self):
        service = EmbeddingService(FakeProvider(version="fake-v9"))
        vector = await service.embed("hello")
        assert vector.model_version == "fake-v9"
        assert vector.text == "hello"

    @pytest.mark.asyncio
    async def test_wrong_dimension_from_provider_raises(self):
        class ShortProvider(FakeProvider):
            async def embed_single(self, text):
                return [1.0]

        service = EmbeddingService(ShortProvider(dimensions=3))
        with pytest.raises(DimensionMismatchError):
            await service.embed("hello")

    @pytest.mark.asyncio
    async def test_clear_cache(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, memory_cache())
        await service.embed("hello")
        await service.clear_cache()
        await service.embed("hello")
        assert len(provider.embedded) == 2


class TestEmbedBatch:
    """Test batch embedding."""

    @pytest.mark.asyncio
    async def test_preserves_input_order(self):
        service = EmbeddingService(FakeProvider(), memory_cache(), batch_size=2)
        texts = ["a", "bbb", "cc", "dddd", "e"]
        result = await service.embed_batch(texts)
        assert [e.text for e in result.embeddings] == texts
        assert [e.vector[0] for e in result.embeddings] == [1.0, 3.0, 2.0, 4.0, 1.0]

    @pytest.mark.asyncio
    async def test_only_misses_are_computed(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, memory_cache())
        await service.embed("cached")
        provider.embedded.clear()

        result = await service.embed_batch(["cached", "fresh", "new"])

        assert result.cached_count == 1
        assert result.computed_count == 2
        assert provider.embedded == [["fresh", "new"]]
        assert len(result.embeddings) == 3

    @pytest.mark.asyncio
    async def test_chunks_by_batch_size(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, batch_size=2)
        await service.embed_batch(["a", "b", "c", "d", "e"])
        assert sorted(len(chunk) for chunk in provider.embedded) == [1, 2, 2]

    @pytest.mark.asyncio
    async def test_duplicates_computed_once(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, memory_cache())
        result = await service.embed_batch(["same", "other", "same"])

        assert provider.embedded == [["same", "other"]]
        assert [e.text for e in result.embeddings] == ["same", "other", "same"]
        assert result.computed_count == 3

    @pytest.mark.asyncio
    async def test_new_vectors_are_cached(self):
        provider = FakeProvider()
        service = EmbeddingService(provider, memory_cache())
        await service.embed_batch(["a", "b"])
        again = await service.embed_batch(["a", "b"])
        assert again.cached_count == 2
        assert again.computed_count == 0
        assert len(provider.embedded) == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        provider = FakeProvider()
        result = await EmbeddingService(provider).embed_batch([])
        assert result.embeddings == []
        assert provider.embedded == []

    @pytest.mark.asyncio
    async def test_short_provider_reply_raises(self):
        class DroppingProvider(FakeProvider):
            async def embed(self, texts):
                return (await super().embed(texts))[:-1]

        service = EmbeddingService(DroppingProvider())
        with pytest.raises(ValueError):
            await service.embed_batch(["a", "bb", "ccc"])
