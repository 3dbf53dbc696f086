"""Deterministic bag-of-words hashing vectorizer.

Needs no model asset: each lower-cased word is hashed into one of
``dimension`` buckets and weighted by ``1 / (position + 1)``; the vector is
L2-normalized. Paraphrases that share most of their leading words score high,
which is enough for air-gapped deployments and for tests.
"""

from __future__ import annotations

import numpy as np

from swarm_loopguard.core.interfaces.embedding_provider_interface import (
    IEmbeddingProvider,
)

DEFAULT_DIMENSION = 384


def word_bucket(word: str, dimension: int) -> int:
    """31-multiplier rolling hash over UTF-8 bytes, wrapped to 32 bits."""
    h = 0
    for byte in word.encode("utf-8"):
        h = (h * 31 + byte) & 0xFFFFFFFF
    return h % dimension


class HashingEmbeddingProvider(IEmbeddingProvider):
    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def name(self) -> str:
        return "hashing"

    @property
    def dimension(self) -> int:
        return self._dimension

    def vectorize(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float64)
        for position, word in enumerate(text.lower().split()):
            vector[word_bucket(word, self._dimension)] += 1.0 / (position + 1)

        norm = np.linalg.norm(vector)
        if norm > 0.0:
            vector /= norm
        return vector.tolist()
