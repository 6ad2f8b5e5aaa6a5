"""
Retrieval service - ingest and query over the document store.

Composes three injected pieces:
- EmbeddingProvider: text -> vector (deterministic hashed tokens)
- DocumentStore: persistence of documents and their embeddings
- similarity.rank(): scoring and ordering

The HTTP layer (retrieval.api) and the CLI both call this class; neither
touches the store directly.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from tripstreamer.core.errors import ValidationFailure
from tripstreamer.observability import get_tracer
from tripstreamer.observability.attributes import (
    RETRIEVAL_CANDIDATE_COUNT,
    RETRIEVAL_DOCUMENT_ID,
    RETRIEVAL_MATCH_COUNT,
    RETRIEVAL_SOURCE,
    RETRIEVAL_TOP_K,
)
from tripstreamer.retrieval.document import DocumentMatch, RetrievalDocument
from tripstreamer.retrieval.similarity import rank

if TYPE_CHECKING:
    from tripstreamer.core import DocumentStore, EmbeddingProvider

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10
MIN_PROMPT_LENGTH = 5
MIN_TOP_K = 1
MAX_TOP_K = 10
DEFAULT_TOP_K = 3
NO_MATCHES_TEXT = "No supporting documents yet."


@dataclass
class QueryResult:
    """Answer to a free-text query."""
    prompt: str
    top_k: int
    matches: list[DocumentMatch] = field(default_factory=list)
    synthesized_response: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Wire format used by the HTTP API."""
        return {
            "prompt": self.prompt,
            "topK": self.top_k,
            "matches": [m.to_dict() for m in self.matches],
            "synthesizedResponse": self.synthesized_response,
        }


def clamp_top_k(top_k: int | None) -> int:
    if top_k is None:
        return DEFAULT_TOP_K
    return max(MIN_TOP_K, min(MAX_TOP_K, int(top_k)))


def synthesize_response(prompt: str, matches: list[DocumentMatch]) -> str:
    """Stitch the ranked matches into a single context block."""
    snippets = "\n\n".join(
        f"Source: {m.source}\nScore: {m.score:.3f}\n{m.text}" for m in matches
    )
    return f"Prompt: {prompt}\n\nContextual snippets:\n{snippets or NO_MATCHES_TEXT}"


class RetrievalService:
    """
    Ingest documents and answer similarity queries.

    Dependencies are INJECTED, not created internally, so tests run against
    InMemoryDocumentStore with no database.
    """

    def __init__(
        self,
        store: DocumentStore,
        embeddings: EmbeddingProvider,
        max_documents: int = 5000,
    ):
        self._store = store
        self._embeddings = embeddings
        self.max_documents = max_documents

    def ingest(
        self,
        source: str,
        text: str,
        metadata: dict[str, Any] | None = None,
        doc_id: str | None = None,
    ) -> str:
        """
        Embed and upsert a document.

        Returns:
            The document id (generated when not supplied)

        Raises:
            ValidationFailure: text shorter than MIN_TEXT_LENGTH
        """
        if text is None or len(text) < MIN_TEXT_LENGTH:
            raise ValidationFailure(
                f"text must be at least {MIN_TEXT_LENGTH} characters"
            )

        doc_id = doc_id or str(uuid.uuid4())
        with get_tracer().start_span(
            "retrieval.ingest",
            attributes={RETRIEVAL_DOCUMENT_ID: doc_id, RETRIEVAL_SOURCE: source},
        ):
            doc = RetrievalDocument(
                id=doc_id,
                source=source,
                text=text,
                embedding=self._embeddings.embed(text),
                metadata=dict(metadata or {}),
            )
            self._store.upsert(doc)

        logger.info(f"Ingested document {doc_id} from {source}")
        return doc_id

    def query(self, prompt: str, top_k: int | None = DEFAULT_TOP_K) -> QueryResult:
        """
        Rank stored documents against a free-text prompt.

        Raises:
            ValidationFailure: prompt shorter than MIN_PROMPT_LENGTH
        """
        if prompt is None or len(prompt) < MIN_PROMPT_LENGTH:
            raise ValidationFailure(
                f"prompt must be at least {MIN_PROMPT_LENGTH} characters"
            )
        top_k = clamp_top_k(top_k)

        with get_tracer().start_span(
            "retrieval.query", attributes={RETRIEVAL_TOP_K: top_k}
        ) as span:
            query_vector = self._embeddings.embed(prompt)
            docs = self._store.fetch_recent(self.max_documents)
            ranked = rank(query_vector, [(doc, doc.embedding) for doc in docs], top_k)

            matches = [
                DocumentMatch(
                    id=doc.id,
                    source=doc.source,
                    text=doc.text,
                    metadata=doc.metadata,
                    score=score,
                )
                for doc, score in ranked
            ]
            span.set_attribute(RETRIEVAL_CANDIDATE_COUNT, len(docs))
            span.set_attribute(RETRIEVAL_MATCH_COUNT, len(matches))

        return QueryResult(
            prompt=prompt,
            top_k=top_k,
            matches=matches,
            synthesized_response=synthesize_response(prompt, matches),
        )


def get_retrieval_service(use_postgres: bool = True) -> RetrievalService:
    """Build a RetrievalService from settings."""
    from tripstreamer.config import get_settings
    from tripstreamer.embeddings import get_embedding_provider
    from tripstreamer.retrieval.store import get_document_store

    settings = get_settings()
    return RetrievalService(
        store=get_document_store(use_postgres=use_postgres),
        embeddings=get_embedding_provider(settings.retrieval.embedding_dim),
        max_documents=settings.retrieval.max_documents,
    )
