"""
Tests for the retrieval HTTP API.

Uses FastAPI's TestClient against an app wired to an in-memory store.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tripstreamer.embeddings import HashedTokenEmbeddings
from tripstreamer.retrieval import InMemoryDocumentStore, RetrievalService
from tripstreamer.retrieval.api import create_app


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def client(store):
    service = RetrievalService(store=store, embeddings=HashedTokenEmbeddings())
    with TestClient(create_app(service, collection="deals")) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# INGEST
# ---------------------------------------------------------------------------


class TestIngestEndpoint:
    """Test POST /api/documents."""

    def test_ingest_returns_id(self, client, store):
        response = client.post(
            "/api/documents",
            json={"source": "guide", "text": "Tokyo flights are cheap in spring"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert store.get(body["id"]) is not None

    def test_ingest_with_id_and_metadata(self, client, store):
        response = client.post(
            "/api/documents",
            json={
                "id": "d1",
                "source": "guide",
                "text": "Paris hotels near the river",
                "metadata": {"lang": "en"},
            },
        )

        assert response.json() == {"status": "ok", "id": "d1"}
        assert store.get("d1").metadata == {"lang": "en"}

    def test_source_defaults_to_unknown(self, client, store):
        client.post("/api/documents", json={"id": "d1", "text": "Paris hotels near the river"})
        assert store.get("d1").source == "unknown"

    def test_short_text_is_400(self, client, store):
        response = client.post("/api/documents", json={"text": "short"})

        assert response.status_code == 400
        assert "error" in response.json()
        assert len(store) == 0

    def test_missing_text_is_400(self, client):
        response = client.post("/api/documents", json={"source": "guide"})
        assert response.status_code == 400


# ---------------------------------------------------------------------------
# QUERY
# ---------------------------------------------------------------------------


class TestQueryEndpoint:
    """Test POST /api/query."""

    def test_query_returns_best_match(self, client):
        client.post("/api/documents", json={"id": "tokyo", "text": "Tokyo flights are cheap in spring"})
        client.post("/api/documents", json={"id": "paris", "text": "Paris hotels near the river"})

        response = client.post("/api/query", json={"prompt": "cheap Tokyo flight", "topK": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["topK"] == 1
        assert [m["id"] for m in body["matches"]] == ["tokyo"]
        assert body["synthesizedResponse"].startswith("Prompt: cheap Tokyo flight")

    def test_top_k_defaults_to_three(self, client):
        response = client.post("/api/query", json={"prompt": "anything here"})
        assert response.json()["topK"] == 3

    def test_empty_store(self, client):
        body = client.post("/api/query", json={"prompt": "anything here"}).json()

        assert body["matches"] == []
        assert "No supporting documents yet." in body["synthesizedResponse"]

    def test_short_prompt_is_400(self, client):
        response = client.post("/api/query", json={"prompt": "hi"})

        assert response.status_code == 400
        assert "error" in response.json()

    @pytest.mark.parametrize("top_k", [0, 11])
    def test_out_of_range_top_k_is_400(self, client, top_k):
        response = client.post("/api/query", json={"prompt": "cheap flights", "topK": top_k})
        assert response.status_code == 400

    def test_service_validation_failure_maps_to_400(self):
        from tripstreamer.core.errors import ValidationFailure

        service = MagicMock()
        service.query.side_effect = ValidationFailure("prompt must be at least 5 characters")
        with TestClient(create_app(service)) as test_client:
            response = test_client.post("/api/query", json={"prompt": "valid prompt"})

        assert response.status_code == 400
        assert response.json() == {"error": "prompt must be at least 5 characters"}


# ---------------------------------------------------------------------------
# HEALTH AND LIFESPAN
# ---------------------------------------------------------------------------


class TestHealth:
    def test_healthz(self, client):
        response = client.get("/healthz")
        assert response.json() == {"status": "ok", "collection": "deals"}

    def test_lifespan_hooks_run(self, store):
        service = RetrievalService(store=store, embeddings=HashedTokenEmbeddings())
        on_startup = MagicMock()
        on_shutdown = MagicMock()

        with TestClient(create_app(service, on_startup=on_startup, on_shutdown=on_shutdown)):
            on_startup.assert_called_once()
            on_shutdown.assert_not_called()

        on_shutdown.assert_called_once()
