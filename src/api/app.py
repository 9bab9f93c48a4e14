"""FastAPI REST API for the retrieval engine.

Provides async endpoints for corpus ingestion, semantic search, context
rendering, grounded answers and health checks. Each app owns its own
pipeline, so several apps can coexist in one process.
"""

from __future__ import annotations

import math
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from src.rag.config import RAGConfig
from src.rag.document import SearchResult
from src.rag.errors import (
    EmptyStoreError,
    NotInitializedError,
    PartialIngestionError,
    ProviderLoadError,
    RAGError,
)
from src.rag.knowledge_base import CorpusEntry
from src.rag.logging_config import get_logger
from src.rag.pipeline import RAGPipeline

logger = get_logger(__name__)


# --- Request/Response Models ---


class IngestRequest(BaseModel):
    """Request body for corpus ingestion."""

    documents: list[CorpusEntry]


class IngestResponse(BaseModel):
    """Response from corpus ingestion."""

    documents_indexed: int
    total_documents: int
    status: str = "success"


class SearchRequest(BaseModel):
    """Request body for search and context rendering."""

    query: str = Field(..., min_length=1, description="Natural-language query")
    top_k: Optional[int] = Field(default=None, ge=1, le=50, description="Number of documents")


class SearchHit(BaseModel):
    """A retrieved document and its similarity score."""

    id: str
    content: str
    metadata: dict
    score: Optional[float] = Field(description="Cosine similarity, null when undefined")


class SearchResponse(BaseModel):
    """Response from a search."""

    query: str
    results: list[SearchHit]


class ContextResponse(BaseModel):
    """Response from a context request."""

    query: str
    context: str


class AnswerResponse(BaseModel):
    """Response from a grounded answer request."""

    answer: str
    question: str
    sources: list[SearchHit]
    model: str
    latency_ms: float


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    mode: str
    embedding_state: str
    document_count: int
    version: str = "0.1.0"


def _hit(result: SearchResult) -> SearchHit:
    return SearchHit(
        id=result.document.id,
        content=result.document.content,
        metadata=result.document.metadata,
        score=result.score if math.isfinite(result.score) else None,
    )


def _http_error(error: RAGError) -> HTTPException:
    """Map an error value onto an HTTP status."""
    if isinstance(error, EmptyStoreError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (NotInitializedError, ProviderLoadError)):
        return HTTPException(status_code=503, detail=str(error))
    if isinstance(error, PartialIngestionError):
        return HTTPException(
            status_code=500,
            detail={"error": str(error), "documents_indexed": error.documents_indexed},
        )
    return HTTPException(status_code=500, detail=str(error))


# --- Application ---


def create_app(config: Optional[RAGConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Optional RAGConfig. Defaults to environment-based config.
    """
    pipeline = RAGPipeline(config or RAGConfig())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Load the embedding model before serving requests."""
        result = await pipeline.initialize()
        if result.is_err():
            logger.error("Embedding provider failed to start: %s", result.error)  # type: ignore[union-attr]
        yield

    app = FastAPI(
        title="Semantic Retrieval Engine",
        description="Embedding-indexed document store with cosine top-k search",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.pipeline = pipeline

    def get_pipeline(request: Request) -> RAGPipeline:
        return request.app.state.pipeline

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        """Health check endpoint."""
        current = get_pipeline(request)
        return HealthResponse(
            status="healthy",
            mode=current.config.mode.value,
            embedding_state=current.embedding_provider.state.value,
            document_count=current.document_count,
        )

    @app.post("/ingest", response_model=IngestResponse)
    async def ingest(request: Request, body: IngestRequest) -> IngestResponse:
        """Append documents to the store."""
        records = [entry.to_record() for entry in body.documents]
        result = await get_pipeline(request).ingest(records)
        if result.is_err():
            raise _http_error(result.error)  # type: ignore[union-attr]
        return IngestResponse(
            documents_indexed=result.unwrap(),
            total_documents=get_pipeline(request).document_count,
        )

    @app.post("/search", response_model=SearchResponse)
    async def search(request: Request, body: SearchRequest) -> SearchResponse:
        """Return the most similar documents for a query."""
        result = await get_pipeline(request).store.search(body.query, top_k=body.top_k)
        if result.is_err():
            raise _http_error(result.error)  # type: ignore[union-attr]
        return SearchResponse(query=body.query, results=[_hit(r) for r in result.unwrap()])

    @app.post("/context", response_model=ContextResponse)
    async def context(request: Request, body: SearchRequest) -> ContextResponse:
        """Render the labeled context string for a query."""
        result = await get_pipeline(request).store.get_context(body.query, top_k=body.top_k)
        if result.is_err():
            raise _http_error(result.error)  # type: ignore[union-attr]
        return ContextResponse(query=body.query, context=result.unwrap())

    @app.post("/answer", response_model=AnswerResponse)
    async def answer(request: Request, body: SearchRequest) -> AnswerResponse:
        """Answer a question grounded in retrieved context."""
        result = await get_pipeline(request).answer(body.query, top_k=body.top_k)
        if result.is_err():
            raise _http_error(result.error)  # type: ignore[union-attr]
        generated = result.unwrap()
        return AnswerResponse(
            answer=generated.answer,
            question=generated.question,
            sources=[_hit(r) for r in generated.sources],
            model=generated.model,
            latency_ms=generated.latency_ms,
        )

    return app


# Default app instance for uvicorn
app = create_app()
