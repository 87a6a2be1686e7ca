"""Tests for embedding providers, pooling, tokenization and model loading."""

import asyncio
import hashlib
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import pytest

from vector_intel.config import IntelConfig
from vector_intel.errors import DimensionMismatchError, ModelLoadError, NetworkError
from vector_intel.providers import ModelLoader, create_embedding_provider
from vector_intel.providers.embedding import HashingEmbeddingProvider
from vector_intel.providers.embedding.hashing import HASHING_MODEL_VERSION
from vector_intel.providers.embedding.onnx import OnnxEmbeddingProvider
from vector_intel.providers.embedding.pooling import l2_normalize, mean_pool
from vector_intel.providers.embedding.remote import RemoteEmbeddingProvider
from vector_intel.providers.embedding.tokenizer import WordPieceTokenizer
from vector_intel.providers.model_loader import sha256_file

VOCAB = ["[PAD]", "[UNK]", "[CLS]", "[SEP]", "machine", "learning", "##s", "deep", "the", ","]


def make_tokenizer(max_length: int = 16) -> WordPieceTokenizer:
    return WordPieceTokenizer({token: i for i, token in enumerate(VOCAB)}, max_length=max_length)


class TestPooling:
    """Test masked mean pooling and normalization."""

    def test_mean_pool_ignores_padding(self):
        tokens = np.array([[[1.0, 0.0], [3.0, 2.0], [100.0, 100.0]]])
        mask = np.array([[1, 1, 0]])
        pooled = mean_pool(tokens, mask)
        np.testing.assert_allclose(pooled, [[2.0, 1.0]])

    def test_all_zero_mask_pools_to_zero(self):
        pooled = mean_pool(np.ones((1, 2, 3)), np.zeros((1, 2)))
        np.testing.assert_allclose(pooled, np.zeros((1, 3)))

    def test_l2_normalize_rows(self):
        normalized = l2_normalize(np.array([[3.0, 4.0], [0.0, 2.0]]))
        np.testing.assert_allclose(np.linalg.norm(normalized, axis=1), [1.0, 1.0])
        np.testing.assert_allclose(normalized[0], [0.6, 0.8])

    def test_zero_vector_stays_zero(self):
        np.testing.assert_allclose(l2_normalize(np.zeros(4)), np.zeros(4))


class TestWordPieceTokenizer:
    """Test the WordPiece tokenizer."""

    def test_encode_adds_special_tokens(self):
        tokenizer = make_tokenizer()
        ids = tokenizer.encode("Machine learning")
        assert ids == [2, 4, 5, 3]

    def test_continuation_pieces(self):
        assert make_tokenizer().encode("machines") == [2, 4, 6, 3]

    def test_unknown_word_maps_to_unk(self):
        assert make_tokenizer().encode("quantum") == [2, 1, 3]

    def test_punctuation_and_accents(self):
        tokenizer = make_tokenizer()
        assert tokenizer.basic_tokenize("Déep, learning!") == ["deep", ",", "learning", "!"]

    def test_truncation_keeps_sep(self):
        tokenizer = make_tokenizer(max_length=4)
        ids = tokenizer.encode("the deep machine learning")
        assert len(ids) == 4
        assert ids[0] == 2 and ids[-1] == 3

    def test_encode_batch_pads(self):
        input_ids, mask = make_tokenizer().encode_batch(["deep", "machine learning"])
        assert input_ids.shape == mask.shape == (2, 4)
        assert input_ids[0].tolist() == [2, 7, 3, 0]
        assert mask[0].tolist() == [1, 1, 1, 0]

    def test_from_file(self, tmp_path):
        vocab_file = tmp_path / "vocab.txt"
        vocab_file.write_text("\n".join(VOCAB) + "\n", encoding="utf-8")
        tokenizer = WordPieceTokenizer.from_file(vocab_file, max_length=8)
        assert tokenizer.vocab["deep"] == 7
        assert tokenizer.cls_id == 2

    def test_rejects_tiny_max_length(self):
        with pytest.raises(ValueError):
            make_tokenizer(max_length=1)


class TestHashingEmbeddingProvider:
    """Test the degraded-mode hashing provider."""

    @pytest.mark.asyncio
    async def test_vectors_are_unit_length(self):
        provider = HashingEmbeddingProvider(dimensions=64)
        vectors = await provider.embed(["machine learning", "cooking pasta"])
        assert len(vectors) == 2
        for vector in vectors:
            assert len(vector) == 64
            assert np.linalg.norm(vector) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_deterministic(self):
        provider = HashingEmbeddingProvider()
        assert await provider.embed_single("same text") == await provider.embed_single("same text")

    @pytest.mark.asyncio
    async def test_lexical_overlap_scores_higher(self):
        provider = HashingEmbeddingProvider()
        a = np.array(await provider.embed_single("machine learning research"))
        b = np.array(await provider.embed_single("machine learning models"))
        c = np.array(await provider.embed_single("a recipe for soup"))
        assert a @ b > a @ c

    def test_own_model_version(self):
        provider = HashingEmbeddingProvider()
        assert provider.model_version == HASHING_MODEL_VERSION
        assert provider.model_name == "hashing-tf"

    @pytest.mark.asyncio
    async def test_empty_text_is_zero_vector(self):
        provider = HashingEmbeddingProvider(dimensions=8)
        assert await provider.embed_single("") == [0.0] * 8


class TestRemoteEmbeddingProvider:
    """Test the remote provider against a mocked client."""

    @pytest.mark.asyncio
    async def test_embed_single_posts_text(self):
        client = MagicMock()
        client.post = AsyncMock(return_value={"embedding": [0.1, 0.2, 0.3]})
        provider = RemoteEmbeddingProvider(client, dimensions=3)

        assert await provider.embed_single("hello") == [0.1, 0.2, 0.3]
        client.post.assert_awaited_once_with("/v1/embeddings", {"text": "hello"})

    @pytest.mark.asyncio
    async def test_embed_preserves_order(self):
        client = MagicMock()

        async def post(path, body):
            await asyncio.sleep(0.01 if body["text"] == "a" else 0)
            return {"embedding": [1.0, 0.0] if body["text"] == "a" else [0.0, 1.0]}

        client.post = AsyncMock(side_effect=post)
        provider = RemoteEmbeddingProvider(client, dimensions=2, concurrency=2)
        assert await provider.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]

    @pytest.mark.asyncio
    async def test_wrong_dimension_raises(self):
        client = MagicMock()
        client.post = AsyncMock(return_value={"embedding": [0.1, 0.2]})
        provider = RemoteEmbeddingProvider(client, dimensions=3)
        with pytest.raises(DimensionMismatchError):
            await provider.embed_single("x")

    @pytest.mark.asyncio
    async def test_malformed_response_raises(self):
        client = MagicMock()
        client.post = AsyncMock(return_value={"data": []})
        provider = RemoteEmbeddingProvider(client, dimensions=3)
        with pytest.raises(NetworkError):
            await provider.embed_single("x")


class TestProviderFactory:
    """Test create_embedding_provider dispatch."""

    def test_hashing(self):
        provider = create_embedding_provider(IntelConfig(embedding_provider="hashing", embedding_dimensions=32))
        assert isinstance(provider, HashingEmbeddingProvider)
        assert provider.dimensions == 32

    def test_local(self, tmp_path):
        config = IntelConfig(embedding_provider="local", embedding_model_dir=tmp_path)
        provider = create_embedding_provider(config)
        assert isinstance(provider, OnnxEmbeddingProvider)
        assert not provider.is_loaded

    def test_remote_requires_client(self):
        with pytest.raises(ValueError):
            create_embedding_provider(IntelConfig(embedding_provider="remote"))
        provider = create_embedding_provider(IntelConfig(embedding_provider="remote"), client=MagicMock())
        assert isinstance(provider, RemoteEmbeddingProvider)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown embedding provider"):
            create_embedding_provider(IntelConfig(embedding_provider="word2vec"))


class TestOnnxEmbeddingProvider:
    """Test the ONNX provider with a fake inference session."""

    @staticmethod
    def fake_session(outputs_fn):
        session = MagicMock()
        session.get_inputs.return_value = [
            SimpleNamespace(name="input_ids"),
            SimpleNamespace(name="attention_mask"),
            SimpleNamespace(name="token_type_ids"),
        ]
        session.run.side_effect = outputs_fn
        return session

    @staticmethod
    def make_provider(tmp_path, dimensions=4):
        vocab = tmp_path / "vocab.txt"
        vocab.write_text("\n".join(VOCAB), encoding="utf-8")
        model = tmp_path / "model.onnx"
        model.write_bytes(b"onnx")

        loader = MagicMock()
        loader.load = AsyncMock(
            side_effect=lambda url, **kwargs: model if url.endswith(".onnx") else vocab
        )
        return OnnxEmbeddingProvider(
            loader,
            "https://models.example.com/model.onnx",
            "https://models.example.com/vocab.txt",
            dimensions=dimensions,
        ), loader

    @pytest.mark.asyncio
    async def test_initialize_fetches_both_artifacts(self, tmp_path):
        provider, loader = self.make_provider(tmp_path)
        session = self.fake_session(lambda names, feeds: [np.ones((1, 3, 4))])

        with patch("vector_intel.providers.embedding.onnx._create_session", return_value=session):
            await provider.initialize()

        assert provider.is_loaded
        assert loader.load.await_count == 2

    @pytest.mark.asyncio
    async def test_embed_mean_pools_and_normalizes(self, tmp_path):
        provider, _ = self.make_provider(tmp_path)
        feeds_seen = {}

        def run(names, feeds):
            feeds_seen.update(feeds)
            batch, seq = feeds["input_ids"].shape
            tokens = np.zeros((batch, seq, 4))
            tokens[:, :, 0] = 3.0
            tokens[:, :, 1] = 4.0
            return [tokens]

        with patch(
            "vector_intel.providers.embedding.onnx._create_session",
            return_value=self.fake_session(run),
        ):
            await provider.initialize()
            vectors = await provider.embed(["machine learning", "deep"])

        assert set(feeds_seen) == {"input_ids", "attention_mask", "token_type_ids"}
        assert not feeds_seen["token_type_ids"].any()
        np.testing.assert_allclose(vectors[0], [0.6, 0.8, 0.0, 0.0])
        np.testing.assert_allclose(vectors[1], [0.6, 0.8, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_pooled_output_is_normalized_directly(self, tmp_path):
        provider, _ = self.make_provider(tmp_path, dimensions=2)

        def run(names, feeds):
            return [np.array([[0.0, 5.0]])]

        with patch(
            "vector_intel.providers.embedding.onnx._create_session",
            return_value=self.fake_session(run),
        ):
            await provider.initialize()
            assert await provider.embed_single("deep") == [0.0, 1.0]

    @pytest.mark.asyncio
    async def test_embed_before_initialize_raises(self, tmp_path):
        provider, _ = self.make_provider(tmp_path)
        with pytest.raises(RuntimeError):
            await provider.embed(["x"])


def _artifact_transport(payload: bytes, failures: int = 0):
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] <= failures:
            return httpx.Response(500)
        return httpx.Response(200, content=payload)

    return httpx.MockTransport(handler), calls


class TestModelLoader:
    """Test artifact download, verification and retry."""

    URL = "https://models.example.com/model.onnx"

    @pytest.mark.asyncio
    async def test_download_verifies_checksum(self, tmp_path):
        payload = b"x" * 200_000
        transport, calls = _artifact_transport(payload)
        loader = ModelLoader(tmp_path, retry_delay=0, transport=transport)
        progress = []

        path = await loader.load(
            self.URL,
            sha256=hashlib.sha256(payload).hexdigest(),
            on_progress=progress.append,
        )

        assert path == tmp_path / "model.onnx"
        assert path.read_bytes() == payload
        assert sha256_file(path) == hashlib.sha256(payload).hexdigest()
        assert loader.status(self.URL) == "loaded"
        assert progress[-1].loaded == len(payload)
        assert progress[-1].percentage == pytest.approx(100.0)
        assert calls["count"] == 1

    @pytest.mark.asyncio
    async def test_existing_valid_file_is_reused(self, tmp_path):
        payload = b"cached-model"
        (tmp_path / "model.onnx").write_bytes(payload)
        transport, calls = _artifact_transport(b"other")
        loader = ModelLoader(tmp_path, transport=transport)

        path = await loader.load(self.URL, sha256=hashlib.sha256(payload).hexdigest())

        assert path.read_bytes() == payload
        assert calls["count"] == 0

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, tmp_path):
        transport, calls = _artifact_transport(b"model", failures=2)
        loader = ModelLoader(tmp_path, max_retries=3, retry_delay=0, transport=transport)
        path = await loader.load(self.URL)
        assert path.read_bytes() == b"model"
        assert calls["count"] == 3

    @pytest.mark.asyncio
    async def test_checksum_mismatch_fails_after_retries(self, tmp_path):
        transport, calls = _artifact_transport(b"corrupted")
        loader = ModelLoader(tmp_path, max_retries=2, retry_delay=0, transport=transport)

        with pytest.raises(ModelLoadError) as exc_info:
            await loader.load(self.URL, sha256="0" * 64)

        error = exc_info.value
        assert error.attempts == 2
        assert error.actual_size == len(b"corrupted")
        assert str(error.path).endswith("model.onnx")
        assert not (tmp_path / "model.onnx").exists()
        assert loader.status(self.URL) == "error"
        assert calls["count"] == 2

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_download(self, tmp_path):
        transport, calls = _artifact_transport(b"model")
        loader = ModelLoader(tmp_path, retry_delay=0, transport=transport)
        first, second = await asyncio.gather(loader.load(self.URL), loader.load(self.URL))
        assert first == second
        assert calls["count"] == 1

    def test_target_path_uses_filename(self, tmp_path):
        loader = ModelLoader(tmp_path)
        assert loader.target_path(self.URL) == tmp_path / "model.onnx"
        assert loader.target_path(self.URL, "minilm.onnx") == tmp_path / "minilm.onnx"
        assert loader.status(self.URL) == "unloaded"
