"""
Embeddings module - text to vector conversion.

1. Protocol (EmbeddingProvider) defines the interface
2. HashedTokenEmbeddings implements it with a deterministic hashing scheme
3. Factory function (get_embedding_provider)
"""

from tripstreamer.embeddings.hashed_embeddings import (
    DEFAULT_DIMENSIONS,
    EmbeddingProvider,
    HashedTokenEmbeddings,
    get_embedding_provider,
    hash_token,
    text_to_vector,
    tokenize,
)

__all__ = [
    "DEFAULT_DIMENSIONS",
    "EmbeddingProvider",
    "HashedTokenEmbeddings",
    "get_embedding_provider",
    "hash_token",
    "text_to_vector",
    "tokenize",
]
