"""Document models for the retrieval engine.

Defines the records that flow through ingestion and search: the immutable
``Document``, the ranked ``SearchResult`` and the ``Progress`` events emitted
while a model loads or a corpus is indexed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union


@dataclass(frozen=True, slots=True)
class Document:
    """A unit of the knowledge corpus."""

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Document id cannot be empty")


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A document returned from search with its cosine similarity score."""

    document: Document
    score: float


@dataclass(frozen=True, slots=True)
class Progress:
    """A progress event for long-running loads and ingestion."""

    status: str
    percent: int
    message: str

    def __post_init__(self) -> None:
        if not 0 <= self.percent <= 100:
            raise ValueError(f"Percent must be between 0 and 100, got {self.percent}")


ProgressSink = Callable[[Progress], None]

CorpusRecord = Mapping[str, Any]
DocumentLike = Union[Document, CorpusRecord]


def to_document(item: DocumentLike, position: int) -> Document:
    """Convert a corpus record ``{id?, content, metadata?}`` into a Document.

    Records without an id are named after their position in the batch.
    """
    if isinstance(item, Document):
        return item
    doc_id: Optional[str] = item.get("id")
    return Document(
        id=str(doc_id) if doc_id else f"doc_{position}",
        content=item["content"],
        metadata=dict(item.get("metadata") or {}),
    )


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """A grounded answer together with the context it was generated from."""

    answer: str
    question: str
    context: str
    sources: list[SearchResult]
    model: str
    latency_ms: float
