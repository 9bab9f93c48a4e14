"""RAG pipeline composing the embedding provider, store and language model.

The pipeline is the primary entry point for applications. It:
1. Initializes the embedding provider
2. Ingests a corpus into the semantic store
3. Retrieves context for a question and generates a grounded answer

All external dependencies are injected, enabling mock mode for demos and
testing without model downloads or API keys.
"""

from __future__ import annotations

import time
from typing import AsyncIterator, Optional, Sequence

from src.rag.config import RAGConfig, RunMode
from src.rag.document import DocumentLike, GenerationResult, ProgressSink, SearchResult
from src.rag.embeddings import EmbeddingProvider, create_embedding_provider
from src.rag.errors import EmptyStoreError, GenerationError, RAGError, RetrievalError
from src.rag.llm import GenerationOptions, LLMProvider, create_llm_provider
from src.rag.logging_config import get_logger
from src.rag.result import Err, Ok, Result
from src.retrieval.store import SemanticStore, format_context

logger = get_logger(__name__)

PROMPT_TEMPLATE = (
    "Answer the following question based ONLY on the provided context. "
    "If the context doesn't contain enough information, say so.\n\n"
    "Context:\n{context}\n\n"
    "Question: {question}\n\n"
    "Answer:"
)


def build_prompt(question: str, context: str) -> str:
    """Place the retrieved context and the question into the answer prompt."""
    return PROMPT_TEMPLATE.format(context=context or "(no context available)", question=question)


class RAGPipeline:
    """Retrieval-augmented generation over an in-memory semantic store.

    Usage:
        pipeline = RAGPipeline(RAGConfig(mode=RunMode.MOCK))
        await pipeline.initialize()
        await pipeline.ingest(KNOWLEDGE_BASE)
        result = await pipeline.answer("What is RAG?")
    """

    def __init__(
        self,
        config: Optional[RAGConfig] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        llm_provider: Optional[LLMProvider] = None,
    ) -> None:
        self._config = config or RAGConfig()

        # Dependency injection with sensible defaults
        self._embeddings = embedding_provider or create_embedding_provider(self._config)
        self._llm = llm_provider or create_llm_provider(self._config)
        self._store = SemanticStore(self._embeddings, self._config)

    @property
    def config(self) -> RAGConfig:
        return self._config

    @property
    def store(self) -> SemanticStore:
        return self._store

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        return self._embeddings

    @property
    def document_count(self) -> int:
        """Return the number of indexed documents."""
        return self._store.size

    async def initialize(self, progress: Optional[ProgressSink] = None) -> Result[None, RetrievalError]:
        """Load the embedding model. Safe to call repeatedly or concurrently."""
        return await self._embeddings.initialize(progress)  # type: ignore[return-value]

    async def ingest(
        self,
        records: Sequence[DocumentLike],
        progress: Optional[ProgressSink] = None,
    ) -> Result[int, RetrievalError]:
        """Ingest corpus records, initializing the provider first if needed.

        Returns:
            Result with the number of documents indexed, or the error.
        """
        if not self._embeddings.is_ready:
            init_result = await self.initialize()
            if init_result.is_err():
                return init_result  # type: ignore[return-value]
        return await self._store.add_documents(records, progress)

    async def retrieve(
        self, question: str, top_k: Optional[int] = None
    ) -> Result[list[SearchResult], RetrievalError]:
        """Retrieve the documents most relevant to a question."""
        k = self._config.context_top_k if top_k is None else top_k
        return await self._store.search(question, top_k=k)

    async def answer(
        self,
        question: str,
        top_k: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> Result[GenerationResult, RAGError]:
        """Retrieve context for a question and generate a grounded answer.

        An empty store is not fatal: the model is asked without context.
        Any other retrieval failure is returned as is.
        """
        start_time = time.monotonic()

        sources_result = await self._sources(question, top_k)
        if sources_result.is_err():
            return Err(sources_result.error)  # type: ignore[union-attr]
        sources = sources_result.unwrap()
        context = format_context(sources)

        gen_result = await self._llm.generate(
            build_prompt(question, context),
            options or GenerationOptions.from_config(self._config),
        )
        if gen_result.is_err():
            return Err(GenerationError(gen_result.error))  # type: ignore[union-attr]

        elapsed_ms = (time.monotonic() - start_time) * 1000
        logger.debug("Answered with %d sources in %.1fms", len(sources), elapsed_ms)
        return Ok(
            GenerationResult(
                answer=gen_result.unwrap(),
                question=question,
                context=context,
                sources=sources,
                model=self._config.llm_model if self._config.mode == RunMode.PRODUCTION else "mock",
                latency_ms=elapsed_ms,
            )
        )

    async def stream_answer(
        self,
        question: str,
        top_k: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> AsyncIterator[str]:
        """Yield a grounded answer in chunks.

        Raises:
            RetrievalError: if retrieval fails for a reason other than an
                empty store
        """
        sources = (await self._sources(question, top_k)).unwrap()
        prompt = build_prompt(question, format_context(sources))
        async for chunk in self._llm.generate_stream(
            prompt, options or GenerationOptions.from_config(self._config)
        ):
            yield chunk

    async def _sources(
        self, question: str, top_k: Optional[int]
    ) -> Result[list[SearchResult], RetrievalError]:
        result = await self.retrieve(question, top_k)
        if result.is_err() and isinstance(result.error, EmptyStoreError):  # type: ignore[union-attr]
            logger.warning("No documents indexed; answering without context")
            return Ok([])
        return result

    def clear(self) -> None:
        """Clear all indexed documents."""
        self._store.clear()
