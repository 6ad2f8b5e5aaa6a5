"""
Clients used by the persistence worker to forward documents.

RetrievalClient talks to the HTTP API; LocalRetrievalNotifier calls a
RetrievalService in the same process (tests, single-process dev runs).
Both raise TransientIOFailure on any failure so the worker can record a
degraded outcome without knowing which transport failed.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from tripstreamer.core.errors import TransientIOFailure, ValidationFailure
from tripstreamer.retrieval.service import RetrievalService

logger = logging.getLogger(__name__)


class RetrievalClient:
    """HTTP client for POST /api/documents."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def ingest(
        self,
        source: str,
        text: str,
        metadata: dict[str, Any] | None = None,
        doc_id: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"source": source, "text": text}
        if metadata is not None:
            payload["metadata"] = metadata
        if doc_id is not None:
            payload["id"] = doc_id

        try:
            response = self._session.post(
                f"{self.base_url}/api/documents",
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientIOFailure(f"Retrieval service unreachable: {e}") from e

        if not response.ok:
            raise TransientIOFailure(
                f"Retrieval service rejected document ({response.status_code}): {response.text}"
            )
        return response.json()["id"]

    def close(self) -> None:
        self._session.close()


class LocalRetrievalNotifier:
    """Forward documents straight into an in-process RetrievalService."""

    def __init__(self, service: RetrievalService):
        self._service = service

    def ingest(
        self,
        source: str,
        text: str,
        metadata: dict[str, Any] | None = None,
        doc_id: str | None = None,
    ) -> str:
        try:
            return self._service.ingest(source, text, metadata=metadata, doc_id=doc_id)
        except ValidationFailure as e:
            raise TransientIOFailure(f"Retrieval service rejected document: {e}") from e
