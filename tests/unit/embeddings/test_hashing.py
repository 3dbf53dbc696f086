import math

import numpy as np
import pytest
from swarm_loopguard.embeddings.hashing import HashingEmbeddingProvider, word_bucket


class TestWordBucket:
    def test_rolling_hash(self) -> None:
        assert word_bucket("a", 384) == 97
        # 97 * 31 + 98 = 3105
        assert word_bucket("ab", 384) == 3105 % 384

    def test_hash_wraps_to_32_bits(self) -> None:
        bucket = word_bucket("x" * 64, 384)
        assert 0 <= bucket < 384


class TestHashingEmbeddingProvider:
    """Deterministic offline embeddings."""

    def test_vector_shape_and_norm(self) -> None:
        provider = HashingEmbeddingProvider()
        vector = provider.vectorize("fix the login bug")
        assert len(vector) == provider.dimension == 384
        assert math.sqrt(sum(x * x for x in vector)) == pytest.approx(1.0)

    def test_deterministic(self) -> None:
        provider = HashingEmbeddingProvider()
        assert provider.vectorize("same text") == provider.vectorize("same text")

    def test_empty_text_is_zero_vector(self) -> None:
        vector = HashingEmbeddingProvider(16).vectorize("   ")
        assert vector == [0.0] * 16

    def test_case_insensitive(self) -> None:
        provider = HashingEmbeddingProvider()
        assert provider.vectorize("Fix Bug") == provider.vectorize("fix bug")

    def test_shared_leading_words_score_higher(self) -> None:
        provider = HashingEmbeddingProvider()
        base = provider.vectorize("fix the login bug now")
        close = provider.vectorize("fix the login bug please")
        far = provider.vectorize("deploy release notes tomorrow")
        # Vectors are unit length, so the dot product is the cosine
        assert np.dot(base, close) > np.dot(base, far)

    def test_invalid_dimension(self) -> None:
        with pytest.raises(ValueError):
            HashingEmbeddingProvider(0)
