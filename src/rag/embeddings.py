"""Embedding providers with dependency injection for mock mode.

Supports:
- Sentence-transformers embeddings (local model, production default)
- OpenAI embeddings (hosted API)
- Mock embeddings (demo/testing - deterministic, no downloads or API keys)

Every provider is a small state machine. ``initialize`` moves it from
``UNINITIALIZED`` through ``LOADING`` to ``READY``. A failed load drops it back
to ``UNINITIALIZED`` so the caller can retry. Concurrent ``initialize`` calls
share one pending load task and all receive its result.
"""

from __future__ import annotations

import asyncio
import hashlib
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

import numpy as np

from src.rag.config import EmbeddingBackend, RAGConfig, RunMode
from src.rag.document import Progress, ProgressSink
from src.rag.errors import (
    EmbeddingError,
    NotInitializedError,
    ProviderLoadError,
    RetrievalError,
)
from src.rag.logging_config import get_logger
from src.rag.result import Err, Ok, Result

logger = get_logger(__name__)


class ProviderState(str, Enum):
    """Lifecycle state of an embedding provider."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class EmbeddingProvider(ABC):
    """Abstract embedding provider.

    Subclasses implement ``_load`` and ``_embed``; the public methods own the
    state machine and turn backend exceptions into ``Err`` values.
    """

    def __init__(self, model_name: str, dimensions: int) -> None:
        self._model_name = model_name
        self._dimensions = dimensions
        self._state = ProviderState.UNINITIALIZED
        self._load_task: Optional[asyncio.Task[Result[None, ProviderLoadError]]] = None

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        """Return the embedding dimensions."""
        return self._dimensions

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ProviderState.READY

    async def initialize(
        self, progress: Optional[ProgressSink] = None
    ) -> Result[None, ProviderLoadError]:
        """Load the model, or wait for the load already in flight.

        The sink of the call that starts the load receives ``loading`` events
        followed by exactly one ``ready`` event. Callers that join an in-flight
        load, or arrive once the provider is ready, receive only the ``ready``
        event. Nothing is reported after a failure.
        """
        if self._state is ProviderState.READY:
            _report(progress, Progress("ready", 100, "Embedding model ready"))
            return Ok(None)

        joined = self._load_task is not None
        if self._load_task is None:
            self._state = ProviderState.LOADING
            self._load_task = asyncio.create_task(self._run_load(progress))

        # A cancelled waiter must not cancel the load other callers share
        result = await asyncio.shield(self._load_task)
        if joined and result.is_ok():
            _report(progress, Progress("ready", 100, "Embedding model ready"))
        return result

    async def _run_load(
        self, progress: Optional[ProgressSink]
    ) -> Result[None, ProviderLoadError]:
        logger.info("Loading embedding model: %s", self._model_name)
        try:
            await self._load(progress)
        except Exception as e:
            self._state = ProviderState.UNINITIALIZED
            logger.error("Failed to load embedding model %s: %s", self._model_name, e)
            return Err(ProviderLoadError(self._model_name, e))
        except asyncio.CancelledError:
            self._state = ProviderState.UNINITIALIZED
            raise
        finally:
            self._load_task = None

        self._state = ProviderState.READY
        logger.info("Embedding model loaded: %s", self._model_name)
        _report(progress, Progress("ready", 100, "Embedding model ready"))
        return Ok(None)

    async def embed(self, text: str) -> Result[list[float], RetrievalError]:
        """Generate the embedding for a single text."""
        if not self.is_ready:
            return Err(NotInitializedError(self._model_name))
        try:
            return Ok(await self._embed(text))
        except Exception as e:
            return Err(EmbeddingError(f"Embedding failed: {e}"))

    async def embed_batch(
        self, texts: list[str]
    ) -> Result[list[list[float]], RetrievalError]:
        """Generate embeddings for a list of texts, in input order."""
        if not self.is_ready:
            return Err(NotInitializedError(self._model_name))
        if not texts:
            return Ok([])
        try:
            vectors = await self._embed_batch(texts)
        except Exception as e:
            return Err(EmbeddingError(f"Batch embedding failed: {e}"))
        if len(vectors) != len(texts):
            return Err(
                EmbeddingError(f"Expected {len(texts)} embeddings, got {len(vectors)}")
            )
        return Ok(vectors)

    @abstractmethod
    async def _load(self, progress: Optional[ProgressSink]) -> None:
        """Load model weights or clients. Raise on failure."""
        ...

    @abstractmethod
    async def _embed(self, text: str) -> list[float]:
        ...

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self._embed(text) for text in texts]


def _report(progress: Optional[ProgressSink], event: Progress) -> None:
    if progress is not None:
        progress(event)


def _loading(progress: Optional[ProgressSink], percent: int) -> None:
    _report(progress, Progress("loading", percent, f"Loading embeddings: {percent}%"))


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic mock embeddings for testing and demos.

    Generates consistent embeddings based on text content hashing.
    Documents with similar words produce similar vectors.
    """

    def __init__(self, dimensions: int = 384, load_delay: float = 0.0) -> None:
        super().__init__(model_name="mock-embeddings", dimensions=dimensions)
        self._load_delay = load_delay

    async def _load(self, progress: Optional[ProgressSink]) -> None:
        _loading(progress, 0)
        await asyncio.sleep(self._load_delay)
        _loading(progress, 100)

    async def _embed(self, text: str) -> list[float]:
        return self._generate_embedding(text)

    def _generate_embedding(self, text: str) -> list[float]:
        """Generate a deterministic embedding from text content.

        Uses word-level hashing to create embeddings where
        texts sharing words will have higher cosine similarity.
        """
        text_hash = hashlib.sha256(text.encode()).hexdigest()
        seed = int(text_hash[:8], 16)
        rng = np.random.RandomState(seed)

        base = rng.randn(self._dimensions).astype(np.float64)

        words = set(text.lower().split())
        for word in words:
            word_hash = hashlib.md5(word.encode()).hexdigest()
            word_seed = int(word_hash[:8], 16)
            word_rng = np.random.RandomState(word_seed)
            word_vec = word_rng.randn(self._dimensions).astype(np.float64)
            base += word_vec * 0.3

        norm = np.linalg.norm(base)
        if norm > 0:
            base = base / norm

        return base.tolist()


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Local sentence-transformers model, mean pooled and L2 normalized.

    Model loading and encoding are blocking, so both run in a worker thread.
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimensions: int = 384,
        device: Optional[str] = None,
        batch_size: int = 32,
    ) -> None:
        super().__init__(model_name=model_name, dimensions=dimensions)
        self._device = device
        self._batch_size = batch_size
        self._model: Any = None

    async def _load(self, progress: Optional[ProgressSink]) -> None:
        from sentence_transformers import SentenceTransformer

        _loading(progress, 0)
        self._model = await asyncio.to_thread(
            SentenceTransformer, self._model_name, device=self._device
        )
        dimensions = self._model.get_sentence_embedding_dimension()
        if dimensions:
            self._dimensions = int(dimensions)
        _loading(progress, 100)

    async def _embed(self, text: str) -> list[float]:
        vector = await asyncio.to_thread(
            self._model.encode, text, normalize_embeddings=True, convert_to_numpy=True
        )
        return vector.tolist()

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        vectors = await asyncio.to_thread(
            self._model.encode,
            texts,
            batch_size=self._batch_size,
            normalize_embeddings=True,
            convert_to_numpy=True,
            show_progress_bar=False,
        )
        return [vector.tolist() for vector in vectors]


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """OpenAI API embedding provider via langchain-openai."""

    def __init__(self, config: RAGConfig) -> None:
        super().__init__(
            model_name=config.openai_embedding_model,
            dimensions=config.embedding_dimensions,
        )
        self._config = config
        self._client: Any = None

    async def _load(self, progress: Optional[ProgressSink]) -> None:
        from langchain_openai import OpenAIEmbeddings

        _loading(progress, 0)
        self._client = OpenAIEmbeddings(
            model=self._config.openai_embedding_model,
            dimensions=self._config.embedding_dimensions,
            openai_api_key=self._config.openai_api_key,
        )
        _loading(progress, 100)

    async def _embed(self, text: str) -> list[float]:
        return await self._client.aembed_query(text)

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        return await self._client.aembed_documents(texts)


def create_embedding_provider(config: RAGConfig) -> EmbeddingProvider:
    """Factory function to create the appropriate embedding provider."""
    if config.mode == RunMode.MOCK:
        return MockEmbeddingProvider(dimensions=config.embedding_dimensions)
    if config.embedding_backend == EmbeddingBackend.OPENAI:
        return OpenAIEmbeddingProvider(config)
    return SentenceTransformerEmbeddingProvider(
        model_name=config.embedding_model,
        dimensions=config.embedding_dimensions,
    )
