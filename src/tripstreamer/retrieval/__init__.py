"""
Retrieval module - similarity lookup over stored documents.

This module provides:
- RetrievalDocument / DocumentMatch: The document models
- cosine_similarity / rank: Pure scoring functions
- PgDocumentStore / InMemoryDocumentStore: Document persistence
- RetrievalService: ingest() and query()
- RetrievalClient: HTTP client used by the persistence worker

ARCHITECTURE:
-------------
1. Protocol defines the contract (in core.protocols)
2. Multiple implementations (PgDocumentStore, InMemoryDocumentStore)
3. Factory function for instantiation
4. Service composes embeddings + store + ranking
"""

from tripstreamer.retrieval.document import DocumentMatch, RetrievalDocument
from tripstreamer.retrieval.similarity import cosine_similarity, rank
from tripstreamer.retrieval.store import (
    DocumentStoreConfig,
    PgDocumentStore,
    InMemoryDocumentStore,
    get_document_store,
)
from tripstreamer.retrieval.service import (
    QueryResult,
    RetrievalService,
    get_retrieval_service,
)
from tripstreamer.retrieval.client import LocalRetrievalNotifier, RetrievalClient

__all__ = [
    # Documents
    "RetrievalDocument",
    "DocumentMatch",
    # Ranking
    "cosine_similarity",
    "rank",
    # Stores
    "DocumentStoreConfig",
    "PgDocumentStore",
    "InMemoryDocumentStore",
    "get_document_store",
    # Service
    "QueryResult",
    "RetrievalService",
    "get_retrieval_service",
    # Clients
    "RetrievalClient",
    "LocalRetrievalNotifier",
]
