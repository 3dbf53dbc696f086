"""
Embedding providers for the semantic matcher.

All providers implement IEmbeddingProvider; the factory maps configuration
to one of them, or to None when no embedding capability is available.
"""

from .factory import create_embedding_provider
from .hashing import HashingEmbeddingProvider
from .remote import RemoteEmbeddingProvider
from .sentence_transformer import SentenceTransformerEmbeddingProvider
from .timeout import TimeBoundedEmbeddingProvider

__all__ = [
    "HashingEmbeddingProvider",
    "RemoteEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
    "TimeBoundedEmbeddingProvider",
    "create_embedding_provider",
]
