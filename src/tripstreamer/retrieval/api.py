"""
FastAPI server for the retrieval service.

Endpoints:
- POST /api/documents  ingest a document
- POST /api/query      rank documents against a prompt
- GET  /healthz        liveness

Every validation failure is answered with 400 {"error": ...}, including the
ones FastAPI would normally report as 422.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from tripstreamer.core.errors import ValidationFailure
from tripstreamer.retrieval.service import (
    MAX_TOP_K,
    MIN_PROMPT_LENGTH,
    MIN_TEXT_LENGTH,
    MIN_TOP_K,
    RetrievalService,
)

logger = logging.getLogger(__name__)


# Request/Response models
class IngestRequest(BaseModel):
    """Request model for document ingestion"""
    id: Optional[str] = Field(default=None, description="Document id (generated if absent)")
    source: str = Field(default="unknown", description="Where the text came from")
    text: str = Field(..., min_length=MIN_TEXT_LENGTH)
    metadata: Optional[dict[str, Any]] = None


class IngestResponse(BaseModel):
    status: str
    id: str


class QueryRequest(BaseModel):
    """Request model for query endpoint"""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., min_length=MIN_PROMPT_LENGTH)
    top_k: Optional[int] = Field(default=None, alias="topK", ge=MIN_TOP_K, le=MAX_TOP_K)


class HealthResponse(BaseModel):
    status: str
    collection: str


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid payload"


def create_app(
    service: RetrievalService,
    collection: str = "default",
    on_startup: Any = None,
    on_shutdown: Any = None,
) -> FastAPI:
    """
    Build the FastAPI application around an injected RetrievalService.

    Args:
        service: The retrieval service to expose
        collection: Collection name reported by /healthz
        on_startup: Optional callable run before serving (e.g. schema creation)
        on_shutdown: Optional callable run on shutdown (e.g. closing the store)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if on_startup is not None:
            on_startup()
        yield
        if on_shutdown is not None:
            on_shutdown()

    app = FastAPI(
        title="Tripstreamer Retrieval API",
        description="Similarity lookup over stored deals and documents",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.collection = collection

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.warning(f"Rejected {request.url.path}: {message}")
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(ValidationFailure)
    async def validation_failure_handler(request: Request, exc: ValidationFailure):
        logger.warning(f"Rejected {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.post("/api/documents", response_model=IngestResponse)
    def ingest_document(payload: IngestRequest) -> IngestResponse:
        doc_id = app.state.service.ingest(
            source=payload.source,
            text=payload.text,
            metadata=payload.metadata,
            doc_id=payload.id,
        )
        return IngestResponse(status="ok", id=doc_id)

    @app.post("/api/query")
    def query_documents(payload: QueryRequest) -> dict:
        result = app.state.service.query(payload.prompt, payload.top_k)
        return result.to_dict()

    @app.get("/healthz", response_model=HealthResponse)
    def healthz() -> HealthResponse:
        return HealthResponse(status="ok", collection=app.state.collection)

    return app


def build_app_from_settings() -> FastAPI:
    """Wire a production app: Postgres document store, settings-driven config."""
    from tripstreamer.config import get_settings
    from tripstreamer.embeddings import get_embedding_provider
    from tripstreamer.retrieval.store import get_document_store

    settings = get_settings()
    store = get_document_store(use_postgres=True)
    service = RetrievalService(
        store=store,
        embeddings=get_embedding_provider(settings.retrieval.embedding_dim),
        max_documents=settings.retrieval.max_documents,
    )
    return create_app(
        service,
        collection=settings.retrieval.collection,
        on_startup=store.create_schema,
        on_shutdown=store.close,
    )
