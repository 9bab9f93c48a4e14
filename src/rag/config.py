"""Configuration management for the retrieval engine.

Supports three modes:
- Production: Real embedding model and real LLM
- Mock: Deterministic fake embeddings and answers for demos and testing
- Hybrid: Real embeddings with mock LLM (cost-effective testing)
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class RunMode(str, Enum):
    """Pipeline execution mode."""

    PRODUCTION = "production"
    MOCK = "mock"
    HYBRID = "hybrid"


class EmbeddingBackend(str, Enum):
    """Embedding backends used outside mock mode."""

    SENTENCE_TRANSFORMERS = "sentence_transformers"
    OPENAI = "openai"


class RAGConfig(BaseSettings):
    """Main configuration.

    All settings can be overridden via environment variables with the RAG_ prefix.
    Example: RAG_MODE=mock, RAG_TOP_K=5, RAG_EMBEDDING_BACKEND=openai
    """

    model_config = {"env_prefix": "RAG_"}

    # Core mode
    mode: RunMode = Field(default=RunMode.MOCK, description="Pipeline execution mode")

    # Embedding settings
    embedding_backend: EmbeddingBackend = Field(
        default=EmbeddingBackend.SENTENCE_TRANSFORMERS,
        description="Embedding backend for production and hybrid modes",
    )
    embedding_model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="Embedding model name",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small", description="Embedding model for the OpenAI backend"
    )
    embedding_dimensions: int = Field(default=384, gt=0, description="Embedding vector dimensions")

    # LLM settings
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    llm_model: str = Field(default="gpt-4o-mini", description="LLM model name")
    llm_temperature: float = Field(default=0.7, description="LLM temperature")
    llm_max_tokens: int = Field(default=500, description="Max tokens for LLM response")
    llm_top_p: float = Field(default=0.95, description="LLM nucleus sampling")

    # Retrieval settings
    top_k: int = Field(default=3, gt=0, description="Default number of documents to retrieve")
    context_top_k: int = Field(
        default=2, gt=0, description="Number of documents placed in an answer's context"
    )
    ingest_concurrency: int = Field(
        default=1, gt=0, description="Maximum embed calls in flight during ingestion"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level for CLI and API")

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")


class MockConfig:
    """Configuration presets for mock/demo mode.

    Returns deterministic responses without requiring any model download or
    API key. Useful for testing, demos, and CI/CD pipelines.
    """

    @staticmethod
    def default() -> RAGConfig:
        """Create a default mock configuration."""
        return RAGConfig(mode=RunMode.MOCK)

    @staticmethod
    def with_overrides(**kwargs: object) -> RAGConfig:
        """Create mock config with specific overrides."""
        defaults = {"mode": RunMode.MOCK}
        defaults.update(kwargs)
        return RAGConfig(**defaults)  # type: ignore[arg-type]
