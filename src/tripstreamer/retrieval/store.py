"""
Document store implementations.

Pattern: Protocol → Production impl → Test double → Factory

This module contains:
1. DocumentStoreConfig - Configuration dataclass
2. PgDocumentStore - PostgreSQL with pgvector (production)
3. InMemoryDocumentStore - In-memory store (testing/development)
4. get_document_store() - Factory function

Ranking happens in Python (retrieval.similarity), not in SQL: the store
only has to hand back the most recently written documents, newest first.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field

import numpy as np
import psycopg
from pgvector.psycopg import register_vector
from psycopg.types.json import Jsonb

from tripstreamer.config import PostgresConfig
from tripstreamer.retrieval.document import RetrievalDocument
from tripstreamer.schemas.deals import utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CONFIGURATION
# ---------------------------------------------------------------------------


@dataclass
class DocumentStoreConfig:
    """Configuration for the document store."""

    connection_string: str = field(default_factory=lambda: PostgresConfig().conninfo)
    embedding_dim: int = 64
    table_name: str = "rag_documents"


# ---------------------------------------------------------------------------
# PGVECTOR STORE (Production)
# ---------------------------------------------------------------------------


class PgDocumentStore:
    """
    PostgreSQL document store using a pgvector column for embeddings.

    Upserts rely on ON CONFLICT (id) DO UPDATE, so concurrent writers need
    no application-level locking. Every upsert refreshes created_at, which
    moves the document to the front of fetch_recent().

    pgvector stores each component as float4, so embeddings come back from
    fetch_recent() rounded to single precision and are widened to float64
    on load. Similarity scores can differ from the in-memory store in the
    low digits (about 1e-7 relative).
    """

    def __init__(self, config: DocumentStoreConfig):
        self.config = config
        self._conn = None

    def connect(self) -> None:
        """Establish database connection."""
        self._conn = psycopg.connect(self.config.connection_string, autocommit=True)
        self._conn.execute("CREATE EXTENSION IF NOT EXISTS vector")
        register_vector(self._conn)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def create_schema(self) -> None:
        """Create the documents table and its recency index."""
        if not self._conn:
            self.connect()

        self._conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.config.table_name} (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL,
                text TEXT NOT NULL,
                embedding vector({self.config.embedding_dim}) NOT NULL,
                metadata JSONB DEFAULT '{{}}'::jsonb,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """
        )

        self._conn.execute(
            f"""
            CREATE INDEX IF NOT EXISTS {self.config.table_name}_created_at_idx
            ON {self.config.table_name} (created_at DESC)
        """
        )

    def upsert(self, doc: RetrievalDocument) -> None:
        """Insert or replace a document by id."""
        if doc.embedding is None:
            raise ValueError(f"Document {doc.id} has no embedding")
        if not self._conn:
            self.connect()

        self._conn.execute(
            f"""
            INSERT INTO {self.config.table_name} (id, source, text, embedding, metadata)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (id) DO UPDATE SET
                source = EXCLUDED.source,
                text = EXCLUDED.text,
                embedding = EXCLUDED.embedding,
                metadata = EXCLUDED.metadata,
                created_at = NOW()
            """,
            (doc.id, doc.source, doc.text, doc.embedding, Jsonb(doc.metadata or {})),
        )

    def fetch_recent(self, limit: int) -> list[RetrievalDocument]:
        """Load up to ``limit`` documents, most recently written first."""
        if not self._conn:
            self.connect()

        rows = self._conn.execute(
            f"""
            SELECT id, source, text, embedding, metadata, created_at
            FROM {self.config.table_name}
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (limit,),
        ).fetchall()

        return [
            RetrievalDocument(
                id=row[0],
                source=row[1],
                text=row[2],
                embedding=np.asarray(row[3], dtype=np.float64),
                metadata=row[4] or {},
                created_at=row[5],
            )
            for row in rows
        ]


# ---------------------------------------------------------------------------
# IN-MEMORY STORE (Testing/Development)
# ---------------------------------------------------------------------------


class InMemoryDocumentStore:
    """
    In-memory document store for development/testing.

    Keeps documents in write order; an upsert moves the document to the
    newest position, mirroring the created_at refresh in PgDocumentStore.
    """

    def __init__(self):
        self._documents: OrderedDict[str, RetrievalDocument] = OrderedDict()

    def connect(self) -> None:
        """No-op for in-memory store."""
        pass

    def close(self) -> None:
        """No-op for in-memory store."""
        pass

    def create_schema(self) -> None:
        """No-op for in-memory store."""
        pass

    def upsert(self, doc: RetrievalDocument) -> None:
        if doc.embedding is None:
            raise ValueError(f"Document {doc.id} has no embedding")
        doc.created_at = utcnow()
        self._documents.pop(doc.id, None)
        self._documents[doc.id] = doc

    def fetch_recent(self, limit: int) -> list[RetrievalDocument]:
        newest_first = list(reversed(self._documents.values()))
        return newest_first[:limit]

    def get(self, doc_id: str) -> RetrievalDocument | None:
        return self._documents.get(doc_id)

    def __len__(self) -> int:
        return len(self._documents)


# ---------------------------------------------------------------------------
# FACTORY FUNCTION
# ---------------------------------------------------------------------------


def get_document_store(
    use_postgres: bool = True,
    config: DocumentStoreConfig | None = None,
) -> PgDocumentStore | InMemoryDocumentStore:
    """
    Factory function to get the appropriate document store.

    Args:
        use_postgres: Use PostgreSQL store (False for tests/dev)
        config: Store configuration (built from settings if not provided)
    """
    if not use_postgres:
        return InMemoryDocumentStore()

    if config is None:
        from tripstreamer.config import get_settings

        settings = get_settings()
        config = DocumentStoreConfig(
            connection_string=settings.postgres.conninfo,
            embedding_dim=settings.retrieval.embedding_dim,
        )
    return PgDocumentStore(config)
