"""Error taxonomy for the retrieval engine.

These are carried inside ``Err`` values rather than raised by the store,
the embedding providers and the pipeline. None of them is retried automatically.
"""

from __future__ import annotations

from typing import Optional


class RAGError(Exception):
    """Base class for all errors carried in ``Err`` values."""


class RetrievalError(RAGError):
    """Base class for all retrieval engine failures."""


class NotInitializedError(RetrievalError):
    """The embedding provider was used before it reached the ready state."""

    def __init__(self, provider: str = "embedding provider") -> None:
        super().__init__(f"{provider} is not initialized; call initialize() first")
        self.provider = provider


class ProviderLoadError(RetrievalError):
    """Loading the embedding model failed. The caller may retry."""

    def __init__(self, model: str, cause: BaseException) -> None:
        super().__init__(f"Failed to load embedding model '{model}': {cause}")
        self.model = model
        self.cause = cause


class EmbeddingError(RetrievalError):
    """A backend failed to embed a piece of text."""


class EmptyStoreError(RetrievalError):
    """Search was attempted before any document was successfully ingested."""

    def __init__(self) -> None:
        super().__init__("Vector store is empty. Add documents first.")


class PartialIngestionError(RetrievalError):
    """An embed call failed in the middle of ``add_documents``.

    Documents ingested before the failure remain in the store;
    ``documents_indexed`` says how many of them this call appended.
    """

    def __init__(
        self,
        documents_indexed: int,
        document_id: Optional[str],
        cause: RetrievalError,
    ) -> None:
        super().__init__(
            f"Ingestion stopped at document {document_id!r} after "
            f"{documents_indexed} document(s): {cause}"
        )
        self.documents_indexed = documents_indexed
        self.document_id = document_id
        self.cause = cause


class GenerationError(RAGError):
    """The language model failed to produce an answer."""
