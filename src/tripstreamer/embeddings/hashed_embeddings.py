"""
Embeddings Module - Single Responsibility: Turn text into fixed-size vectors.

The retrieval index does not call an embedding model. It uses a
bag-of-hashed-tokens scheme instead:

1. Lower-case the text and split on anything that is not [a-z0-9]
2. Hash every token with a 31-based rolling hash wrapped to signed 32-bit
3. Count tokens per bucket (hash % dimensions)
4. L2-normalise the counts

The mapping is byte-deterministic, so the same text yields the identical
vector in every process and on every run. It is not semantically rich:
"flight" and "flights" land in unrelated buckets.
"""

from __future__ import annotations

import math
import re
from typing import Protocol

import numpy as np

DEFAULT_DIMENSIONS = 64

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers - enables easy swapping."""

    @property
    def dimensions(self) -> int:
        ...

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        ...


def tokenize(text: str) -> list[str]:
    """Lower-case and split on runs of non-alphanumeric characters."""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


def hash_token(token: str) -> int:
    """31-based polynomial rolling hash, wrapped to a signed 32-bit int."""
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def text_to_vector(text: str, dimensions: int = DEFAULT_DIMENSIONS) -> np.ndarray:
    """
    Embed text as an L2-normalised bag of hashed tokens.

    Returns the zero vector when the text has no tokens.
    """
    if dimensions < 1:
        raise ValueError("dimensions must be positive")

    vector = np.zeros(dimensions, dtype=np.float64)
    tokens = tokenize(text)
    if not tokens:
        return vector

    for token in tokens:
        vector[abs(hash_token(token)) % dimensions] += 1.0

    norm = math.sqrt(float(np.dot(vector, vector)))
    if norm == 0:
        return vector
    return vector / norm


class HashedTokenEmbeddings:
    """
    Deterministic embedding provider backed by text_to_vector().

    Implements the EmbeddingProvider protocol so stores and the retrieval
    service never depend on the hashing scheme directly.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS):
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> np.ndarray:
        return text_to_vector(text, self._dimensions)

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        return [self.embed(text) for text in texts]


def get_embedding_provider(dimensions: int | None = None) -> EmbeddingProvider:
    """
    Factory function for the embedding provider.

    Args:
        dimensions: Vector size (defaults to RAG_EMBEDDING_DIM from settings)
    """
    if dimensions is None:
        from tripstreamer.config import get_settings

        dimensions = get_settings().retrieval.embedding_dim
    return HashedTokenEmbeddings(dimensions)
