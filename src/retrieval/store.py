"""In-memory semantic document store.

Keeps documents and their embedding vectors in two parallel lists: the
vector at position ``i`` is always the embedding of the document at position
``i``. Both lists are appended together, with no await in between, so they
never differ in length after a mutation completes.

The store has a single logical owner. It does no locking, and a ``search``
issued while ``add_documents`` is running may see a partially ingested
corpus.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Sequence

from src.rag.config import RAGConfig
from src.rag.document import (
    Document,
    DocumentLike,
    Progress,
    ProgressSink,
    SearchResult,
    to_document,
)
from src.rag.embeddings import EmbeddingProvider
from src.rag.errors import (
    EmbeddingError,
    EmptyStoreError,
    PartialIngestionError,
    RetrievalError,
)
from src.rag.logging_config import get_logger
from src.rag.result import Err, Ok, Result
from src.retrieval.similarity import rank_by_similarity

logger = get_logger(__name__)


def format_context(results: Sequence[SearchResult]) -> str:
    """Render ranked results as ``[Source i]`` blocks separated by blank lines."""
    return "\n\n".join(
        f"[Source {i}] {result.document.content}"
        for i, result in enumerate(results, start=1)
    )


def _percent(done: int, total: int) -> int:
    # round half up
    return (200 * done + total) // (2 * total)


class SemanticStore:
    """Embedding-indexed document store with cosine top-k search."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        config: Optional[RAGConfig] = None,
    ) -> None:
        self._embeddings = embedding_provider
        self._config = config or RAGConfig()
        self._documents: list[Document] = []
        self._vectors: list[list[float]] = []
        self._ready = False

    @property
    def size(self) -> int:
        """Return the number of documents in the store."""
        return len(self._documents)

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def documents(self) -> tuple[Document, ...]:
        return tuple(self._documents)

    @property
    def embeddings(self) -> tuple[list[float], ...]:
        return tuple(self._vectors)

    async def add_documents(
        self,
        docs: Sequence[DocumentLike],
        progress: Optional[ProgressSink] = None,
    ) -> Result[int, RetrievalError]:
        """Embed and append documents in input order.

        Records without an id get ``doc_<position>``. Ids are not
        deduplicated: every call is a pure append.

        If embedding document ``i`` fails, the call stops and returns
        ``Err(PartialIngestionError)``. Documents ``0..i-1`` of this call
        stay in the store and ``documents_indexed`` reports how many.

        With ``ingest_concurrency > 1`` several embed calls run at once, but
        documents are still appended and reported strictly in input order.

        Returns:
            Result with the number of documents appended, or the error.
        """
        documents = [to_document(doc, i) for i, doc in enumerate(docs)]
        if not documents:
            return Ok(0)

        total = len(documents)
        logger.info("Indexing %d documents", total)
        semaphore = asyncio.Semaphore(self._config.ingest_concurrency)

        async def embed_one(document: Document) -> Result[list[float], RetrievalError]:
            async with semaphore:
                return await self._embeddings.embed(document.content)

        tasks = [asyncio.create_task(embed_one(doc)) for doc in documents]
        indexed = 0
        try:
            for position, (document, task) in enumerate(zip(documents, tasks)):
                embed_result = await task
                if embed_result.is_err():
                    return self._ingestion_failed(indexed, document, embed_result.error)  # type: ignore[union-attr]

                vector = embed_result.unwrap()
                mismatch = self._dimension_mismatch(vector)
                if mismatch is not None:
                    return self._ingestion_failed(indexed, document, mismatch)

                self._documents.append(document)
                self._vectors.append(vector)
                self._ready = True
                indexed += 1

                if progress is not None:
                    progress(
                        Progress(
                            status="indexing",
                            percent=_percent(position + 1, total),
                            message=f"Indexing document {position + 1}/{total}",
                        )
                    )
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        logger.info("Indexed %d documents (store size %d)", indexed, self.size)
        return Ok(indexed)

    def _dimension_mismatch(self, vector: list[float]) -> Optional[EmbeddingError]:
        if self._vectors and len(vector) != len(self._vectors[0]):
            return EmbeddingError(
                f"Embedding has {len(vector)} dimensions, store holds "
                f"{len(self._vectors[0])}-dimensional vectors"
            )
        return None

    def _ingestion_failed(
        self, indexed: int, document: Document, cause: RetrievalError
    ) -> Err[RetrievalError]:
        logger.warning(
            "Ingestion stopped at document %s after %d document(s): %s",
            document.id,
            indexed,
            cause,
        )
        return Err(PartialIngestionError(indexed, document.id, cause))

    async def search(
        self, query: str, top_k: Optional[int] = None
    ) -> Result[list[SearchResult], RetrievalError]:
        """Return the ``top_k`` documents most similar to the query.

        Results are sorted by descending cosine similarity; ties keep
        insertion order. Asking for more results than there are documents is
        not an error.
        """
        k = self._resolve_top_k(top_k)
        if not self._ready or not self._documents:
            return Err(EmptyStoreError())

        start = time.monotonic()
        query_result = await self._embeddings.embed(query)
        if query_result.is_err():
            return Err(query_result.error)  # type: ignore[union-attr]

        # The store may have been cleared while the query was being embedded
        if not self._documents:
            return Err(EmptyStoreError())

        ranked = rank_by_similarity(query_result.unwrap(), self._vectors)
        results = [
            SearchResult(document=self._documents[position], score=score)
            for position, score in ranked[:k]
        ]
        logger.debug(
            "Search over %d documents returned %d results in %.1fms",
            len(self._documents),
            len(results),
            (time.monotonic() - start) * 1000,
        )
        return Ok(results)

    async def get_context(
        self, query: str, top_k: Optional[int] = None
    ) -> Result[str, RetrievalError]:
        """Search and render the results as a labeled context string."""
        search_result = await self.search(query, top_k=top_k)
        return search_result.map(format_context)

    def clear(self) -> None:
        """Remove every document and reset the ready flag."""
        self._documents = []
        self._vectors = []
        self._ready = False

    def _resolve_top_k(self, top_k: Optional[int]) -> int:
        k = self._config.top_k if top_k is None else top_k
        if isinstance(k, bool) or not isinstance(k, int) or k < 1:
            raise ValueError(f"top_k must be a positive integer, got {top_k!r}")
        return k
