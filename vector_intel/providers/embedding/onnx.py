"""
Local ONNX Embedding Provider

Runs a sentence-transformer exported to ONNX (all-MiniLM-L6-v2 by default)
entirely in-process with onnxruntime.

Pipeline:
    text -> WordPiece ids (CLS/SEP, max 128) -> ONNX forward pass
         -> attention-masked mean pooling -> L2 normalization

The model file and its vocab.txt are fetched on first initialize() through
ModelLoader (checksum-verified, retried, cached on disk). Inference runs in
a worker thread; a batch slower than 100 ms is logged as a warning.

Example:
    >>> provider = OnnxEmbeddingProvider.from_config(IntelConfig())
    >>> await provider.initialize()
    >>> vectors = await provider.embed(["Hello world", "Goodbye world"])
    >>> len(vectors[0])
    384
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from vector_intel.providers.base import EmbeddingProvider
from vector_intel.providers.embedding.pooling import l2_normalize, mean_pool
from vector_intel.providers.embedding.tokenizer import WordPieceTokenizer
from vector_intel.providers.model_loader import ModelLoader, ProgressCallback

if TYPE_CHECKING:
    import onnxruntime

    from vector_intel.config import IntelConfig

logger = logging.getLogger(__name__)

SLOW_INFERENCE_MS = 100.0
DEFAULT_MODEL = "all-MiniLM-L6-v2"
DEFAULT_MODEL_VERSION = "onnx-minilm-l6-v2"


def _create_session(model_path: Path) -> "onnxruntime.InferenceSession":
    """
    Build an onnxruntime session.

    Uses lazy import to keep module import cheap when another provider is used.
    """
    try:
        import onnxruntime
    except ImportError:
        raise ImportError(
            "Local embedding provider requires the 'onnxruntime' package. "
            "Install with: pip install onnxruntime"
        )

    available = set(onnxruntime.get_available_providers())
    providers = ["CPUExecutionProvider"]
    if "CUDAExecutionProvider" in available:
        providers.insert(0, "CUDAExecutionProvider")

    options = onnxruntime.SessionOptions()
    options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL
    return onnxruntime.InferenceSession(str(model_path), options, providers=providers)


class OnnxEmbeddingProvider(EmbeddingProvider):
    """
    In-process embedding model.

    Args:
        loader: ModelLoader used to fetch the model and vocabulary
        model_url: URL of the .onnx file
        vocab_url: URL of vocab.txt
        model_sha256: Optional checksum of the model file
        vocab_sha256: Optional checksum of the vocabulary
        model: Model name
        model_version: Version tag written into every EmbeddingVector
        dimensions: Output dimensionality
        max_length: Maximum token sequence length
        on_progress: Optional download progress callback
    """

    def __init__(
        self,
        loader: ModelLoader,
        model_url: str,
        vocab_url: str,
        *,
        model_sha256: str | None = None,
        vocab_sha256: str | None = None,
        model: str = DEFAULT_MODEL,
        model_version: str = DEFAULT_MODEL_VERSION,
        dimensions: int = 384,
        max_length: int = 128,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.loader = loader
        self.model_url = model_url
        self.vocab_url = vocab_url
        self.model_sha256 = model_sha256
        self.vocab_sha256 = vocab_sha256
        self.max_length = max_length
        self.on_progress = on_progress
        self._model = model
        self._model_version = model_version
        self._dimensions = dimensions
        self._session: Any = None
        self._tokenizer: WordPieceTokenizer | None = None
        self._input_names: set[str] = set()

    @classmethod
    def from_config(
        cls,
        config: "IntelConfig",
        loader: ModelLoader | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> "OnnxEmbeddingProvider":
        loader = loader or ModelLoader(
            config.embedding_model_dir,
            max_retries=config.model_load_retries,
            retry_delay=config.model_load_retry_delay,
        )
        return cls(
            loader,
            config.embedding_model_url,
            config.embedding_vocab_url,
            model_sha256=config.embedding_model_sha256,
            vocab_sha256=config.embedding_vocab_sha256,
            model=config.embedding_model,
            model_version=config.embedding_model_version,
            dimensions=config.embedding_dimensions,
            max_length=config.embedding_max_sequence_length,
            on_progress=on_progress,
        )

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def model_version(self) -> str:
        return self._model_version

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    async def initialize(self) -> None:
        """Fetch artifacts, build the tokenizer and the inference session."""
        if self._session is not None:
            return

        model_path, vocab_path = await asyncio.gather(
            self.loader.load(
                self.model_url,
                filename=f"{self._model}.onnx",
                sha256=self.model_sha256,
                on_progress=self.on_progress,
            ),
            self.loader.load(
                self.vocab_url,
                filename=f"{self._model}.vocab.txt",
                sha256=self.vocab_sha256,
            ),
        )

        start = time.perf_counter()
        self._tokenizer = await asyncio.to_thread(
            WordPieceTokenizer.from_file, vocab_path, self.max_length
        )
        self._session = await asyncio.to_thread(_create_session, model_path)
        self._input_names = {i.name for i in self._session.get_inputs()}
        logger.info(
            "Loaded %s (%s) in %.0fms",
            self._model, self._model_version, (time.perf_counter() - start) * 1000,
        )

    async def close(self) -> None:
        self._session = None
        self._tokenizer = None

    def _infer(self, texts: list[str]) -> np.ndarray:
        if self._session is None or self._tokenizer is None:
            raise RuntimeError("OnnxEmbeddingProvider used before initialize()")

        input_ids, attention_mask = self._tokenizer.encode_batch(texts)
        feeds = {"input_ids": input_ids, "attention_mask": attention_mask}
        if "token_type_ids" in self._input_names:
            feeds["token_type_ids"] = np.zeros_like(input_ids)
        feeds = {k: v for k, v in feeds.items() if k in self._input_names}

        outputs = self._session.run(None, feeds)
        token_embeddings = outputs[0]
        if token_embeddings.ndim == 2:
            # Model already pools to sentence vectors
            return l2_normalize(token_embeddings)
        return l2_normalize(mean_pool(token_embeddings, attention_mask))

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Returns:
            List of unit-length vectors (same order as input)
        """
        if not texts:
            return []

        start = time.perf_counter()
        vectors = await asyncio.to_thread(self._infer, texts)
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > SLOW_INFERENCE_MS:
            logger.warning(
                "Slow embedding inference: %.0fms for %d texts", elapsed_ms, len(texts)
            )
        else:
            logger.debug("Embedded %d texts in %.1fms", len(texts), elapsed_ms)
        return vectors.tolist()

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        return vectors[0]
