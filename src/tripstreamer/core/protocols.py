"""
Core protocols defining contracts for the entire system.

All infrastructure components implement these protocols,
enabling dependency injection and easy testing.

PATTERN:
- Protocol defines the contract
- Production implementation talks to Postgres / SQS / HTTP
- In-memory implementation backs the unit tests
- Factory functions handle instantiation from settings
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from tripstreamer.retrieval.document import RetrievalDocument
    from tripstreamer.schemas.deals import DealEvent, DealSort


# ---------------------------------------------------------------------------
# EMBEDDING PROVIDER PROTOCOL
# ---------------------------------------------------------------------------
# Re-exported from embeddings module for consistency

@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Contract for embedding generation.

    Implementations:
    - HashedTokenEmbeddings
    """

    def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        ...

    def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        ...


# ---------------------------------------------------------------------------
# DOCUMENT STORE PROTOCOL
# ---------------------------------------------------------------------------

@runtime_checkable
class DocumentStore(Protocol):
    """
    Contract for retrieval document persistence.

    Implementations:
    - PgDocumentStore (production with PostgreSQL + pgvector)
    - InMemoryDocumentStore (testing/development)
    """

    def upsert(self, doc: RetrievalDocument) -> None:
        """Insert or replace a document by id."""
        ...

    def fetch_recent(self, limit: int) -> list[RetrievalDocument]:
        """Return up to ``limit`` documents, most recently written first."""
        ...


# ---------------------------------------------------------------------------
# DEAL STORE PROTOCOL
# ---------------------------------------------------------------------------

@runtime_checkable
class DealStore(Protocol):
    """
    Contract for canonical deal persistence.

    Implementations:
    - PgDealStore (production)
    - InMemoryDealStore (testing)
    """

    def insert_deal(self, deal: DealEvent) -> bool:
        """Insert-or-ignore. Returns True if a new row was written."""
        ...

    def count_by_destination(self, destination: str) -> int:
        ...

    def fetch_deals(
        self,
        destination: str | None = None,
        max_price: float | None = None,
        sort_by: DealSort | None = None,
        limit: int = 50,
    ) -> list[DealEvent]:
        ...

    def get_deal(self, deal_id: str) -> DealEvent | None:
        ...


# ---------------------------------------------------------------------------
# DURABLE QUEUE PROTOCOL
# ---------------------------------------------------------------------------

@dataclass
class ReceivedMessage:
    """A message handed out by the queue, pending acknowledgment."""
    message_id: str
    receipt_handle: str
    body: str
    attributes: dict[str, str] = field(default_factory=dict)
    receive_count: int = 1


@runtime_checkable
class DurableQueue(Protocol):
    """
    Contract for a visibility-timeout, at-least-once queue.

    Implementations:
    - SqsQueue (production, boto3)
    - InMemoryQueue (testing)
    """

    name: str

    def send(self, body: str, attributes: dict[str, str] | None = None) -> str:
        """Enqueue a message. Returns its message id."""
        ...

    def receive(self, max_messages: int, wait_seconds: int) -> list[ReceivedMessage]:
        """Long-poll for up to ``max_messages`` messages."""
        ...

    def delete(self, receipt_handle: str) -> None:
        """Acknowledge a message."""
        ...


# ---------------------------------------------------------------------------
# RETRIEVAL NOTIFIER PROTOCOL
# ---------------------------------------------------------------------------

@runtime_checkable
class RetrievalNotifier(Protocol):
    """
    Contract for forwarding documents to the retrieval service.

    Implementations:
    - RetrievalClient (HTTP)
    - LocalRetrievalNotifier (in-process RetrievalService)
    """

    def ingest(
        self,
        source: str,
        text: str,
        metadata: dict[str, Any] | None = None,
        doc_id: str | None = None,
    ) -> str:
        ...
