"""
Sentence Pooling

Turns per-token model outputs into one vector per text:
mean over the tokens the attention mask keeps, then L2 normalization.
"""

from __future__ import annotations

import numpy as np


def mean_pool(token_embeddings: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """
    Attention-masked mean of token vectors.

    Args:
        token_embeddings: batch x seq x hidden
        attention_mask: batch x seq (1 = real token, 0 = padding)

    Returns:
        batch x hidden; rows with an all-zero mask pool to zero vectors
    """
    mask = attention_mask.astype(np.float64)[..., np.newaxis]
    summed = (token_embeddings.astype(np.float64) * mask).sum(axis=1)
    counts = np.clip(mask.sum(axis=1), 1e-9, None)
    return summed / counts


def l2_normalize(vectors: np.ndarray) -> np.ndarray:
    """
    Divide each row by its Euclidean norm.

    A zero-norm row is returned unchanged (still the zero vector).
    """
    arr = np.asarray(vectors, dtype=np.float64)
    single = arr.ndim == 1
    if single:
        arr = arr[np.newaxis, :]
    norms = np.linalg.norm(arr, axis=1, keepdims=True)
    safe = np.where(norms > 0, norms, 1.0)
    normalized = arr / safe
    return normalized[0] if single else normalized
