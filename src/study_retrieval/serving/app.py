"""FastAPI application exposing document ingestion and semantic search."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from study_retrieval.config import settings
from study_retrieval.errors import (
    BatchUpsertError,
    DimensionMismatchError,
    EmbeddingError,
    StoreError,
)
from study_retrieval.ingestion.embedder import EmbedderBase, HuggingFaceEmbedder
from study_retrieval.ingestion.loader import load_document_text
from study_retrieval.ingestion.models import IngestionStatus
from study_retrieval.ingestion.pipeline import IngestionOrchestrator
from study_retrieval.retrieval.factory import create_gateway
from study_retrieval.retrieval.gateway import VectorStoreGateway
from study_retrieval.retrieval.models import SearchHit
from study_retrieval.retrieval.retriever import SemanticRetriever

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Long-lived objects shared by every request."""

    embedder: EmbedderBase
    gateway: VectorStoreGateway
    orchestrator: IngestionOrchestrator
    retriever: SemanticRetriever

    @classmethod
    def build(
        cls,
        embedder: EmbedderBase | None = None,
        gateway: VectorStoreGateway | None = None,
    ) -> Services:
        embedder = embedder or HuggingFaceEmbedder()
        gateway = gateway or create_gateway(settings)
        if embedder.dimension != gateway.vector_size:
            raise DimensionMismatchError(gateway.vector_size, embedder.dimension, context="embedder")
        return cls(
            embedder=embedder,
            gateway=gateway,
            orchestrator=IngestionOrchestrator(embedder, gateway),
            retriever=SemanticRetriever(embedder, gateway, default_k=settings.search_default_limit),
        )


# ── Request / Response schemas ────────────────────────────────────────
class IngestRequest(BaseModel):
    """Document to index — inline text or a server-side file path."""

    text: str | None = None
    path: str | None = None
    resume_from: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _one_source(self) -> IngestRequest:
        if (self.text is None) == (self.path is None):
            raise ValueError("Provide exactly one of 'text' or 'path'")
        return self


class IngestResponse(BaseModel):
    """Outcome of an ingestion run."""

    file_id: int
    status: IngestionStatus
    stored_count: int
    total_chunks: int
    resume_from: int
    error: str | None = None


class SearchRequest(BaseModel):
    """Semantic query, optionally restricted to one document."""

    query: str = Field(min_length=1)
    limit: int = Field(default=settings.search_default_limit, ge=1, le=100)
    file_id: int | None = None


class DocumentTextResponse(BaseModel):
    """Stored text of one document, reassembled in chunk order."""

    file_id: int
    text: str


def _misconfigured(exc: DimensionMismatchError) -> HTTPException:
    # Embedder and collection disagree on vector size; no request can succeed.
    logger.error("Vector dimension mismatch: %s", exc)
    return HTTPException(
        status_code=500,
        detail={"error": str(exc), "expected": exc.expected, "actual": exc.actual},
    )


def create_app(services: Services | None = None) -> FastAPI:
    """Build the API.

    When *services* is ``None`` they are created from settings at startup
    and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = services is None
        app.state.services = services or Services.build()
        try:
            yield
        finally:
            if owned:
                await app.state.services.gateway.close()

    app = FastAPI(
        title="Study Retrieval API",
        version="0.1.0",
        description="Document indexing and semantic search for the study assistant.",
        lifespan=lifespan,
    )

    def _services(request: Request) -> Services:
        return request.app.state.services

    # ── Routes ────────────────────────────────────────────────────────
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe — is the vector store reachable?"""
        ok = await _services(request).gateway.health_check()
        return JSONResponse(
            status_code=200 if ok else 503,
            content={"status": "ok" if ok else "unavailable", "vector_store": ok},
        )

    @app.post("/documents/{file_id}/ingest", response_model=IngestResponse)
    async def ingest(file_id: int, body: IngestRequest, request: Request) -> JSONResponse:
        """Chunk, embed and index one document."""
        svc = _services(request)
        if body.path is not None:
            try:
                text = await asyncio.to_thread(load_document_text, body.path)
            except FileNotFoundError:
                raise HTTPException(status_code=404, detail=f"File not found: {body.path}")
            except ValueError as exc:
                raise HTTPException(status_code=415, detail=str(exc))
        else:
            text = body.text or ""

        try:
            result = await svc.orchestrator.ingest(file_id, text, resume_from=body.resume_from)
        except EmbeddingError as exc:
            raise HTTPException(
                status_code=422,
                detail={"error": str(exc), "file_id": file_id, "chunk_index": exc.chunk_index},
            )
        except BatchUpsertError as exc:
            raise HTTPException(
                status_code=502,
                detail={
                    "error": str(exc),
                    "file_id": file_id,
                    "stored_count": exc.stored_count,
                    "total_count": exc.total_count,
                    "resume_from": body.resume_from + exc.stored_count,
                },
            )
        except DimensionMismatchError as exc:
            raise _misconfigured(exc)
        except StoreError as exc:
            raise HTTPException(status_code=503, detail={"error": str(exc), "file_id": file_id})

        response = IngestResponse(
            file_id=result.file_id,
            status=result.status,
            stored_count=result.stored_count,
            total_chunks=result.total_chunks,
            resume_from=result.resume_from,
            error=result.error,
        )
        return JSONResponse(
            status_code=200 if result.complete else 207,
            content=response.model_dump(mode="json"),
        )

    @app.post("/search", response_model=list[SearchHit])
    async def search(body: SearchRequest, request: Request) -> list[SearchHit]:
        """Return the chunks most similar to the query."""
        try:
            return await _services(request).retriever.search(
                body.query, k=body.limit, file_id=body.file_id
            )
        except EmbeddingError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        except DimensionMismatchError as exc:
            raise _misconfigured(exc)
        except StoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc))

    @app.get("/documents/{file_id}/text", response_model=DocumentTextResponse)
    async def document_text(file_id: int, request: Request) -> DocumentTextResponse:
        """Reassemble a document's indexed text (input for quiz and note generation)."""
        try:
            text = await _services(request).gateway.document_text(file_id)
        except StoreError as exc:
            raise HTTPException(status_code=503, detail=str(exc))
        if not text:
            raise HTTPException(status_code=404, detail="No content found for this document")
        return DocumentTextResponse(file_id=file_id, text=text)

    return app


logging.basicConfig(level=settings.log_level)

app = create_app()
