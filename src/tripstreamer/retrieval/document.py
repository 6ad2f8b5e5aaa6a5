"""
Document model for the retrieval system.

Single responsibility: Define the structure of documents
stored in the document store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import numpy as np

from tripstreamer.schemas.deals import format_timestamp, utcnow


@dataclass
class RetrievalDocument:
    """
    A text unit with its derived embedding.

    Upserted by id. The embedding is recomputed by the service every time
    the text is written, so it never drifts from the text.
    """
    id: str
    source: str
    text: str
    embedding: np.ndarray | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "source": self.source,
            "text": self.text,
            "metadata": self.metadata,
            "createdAt": format_timestamp(self.created_at),
        }


@dataclass
class DocumentMatch:
    """A ranked query hit."""
    id: str
    source: str
    text: str
    metadata: dict[str, Any]
    score: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "text": self.text,
            "metadata": self.metadata,
            "score": self.score,
        }
