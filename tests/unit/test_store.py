"""Tests for the in-memory semantic store."""

import asyncio
from typing import Optional

import pytest
from hypothesis import given, settings, strategies as st

from src.rag.config import MockConfig
from src.rag.document import Document, Progress, ProgressSink
from src.rag.embeddings import EmbeddingProvider, MockEmbeddingProvider, ProviderState
from src.rag.errors import (
    EmbeddingError,
    EmptyStoreError,
    NotInitializedError,
    PartialIngestionError,
)
from src.retrieval.similarity import INVALID_SCORE
from src.retrieval.store import SemanticStore, format_context


class StaticEmbeddingProvider(EmbeddingProvider):
    """Returns hand-picked vectors, optionally failing or delaying per text."""

    def __init__(
        self,
        vectors: dict[str, list[float]],
        failing: frozenset[str] = frozenset(),
        delays: Optional[dict[str, float]] = None,
    ) -> None:
        super().__init__(model_name="static", dimensions=3)
        self.vectors = vectors
        self.failing = failing
        self.delays = delays or {}
        self.calls: list[str] = []

    async def _load(self, progress: Optional[ProgressSink]) -> None:
        return None

    async def _embed(self, text: str) -> list[float]:
        self.calls.append(text)
        await asyncio.sleep(self.delays.get(text, 0))
        if text in self.failing:
            raise RuntimeError(f"cannot embed {text!r}")
        return self.vectors[text]


VECTORS = {
    "cats are mammals": [0.9, 0.1, 0.0],
    "rockets use fuel": [0.0, 0.2, 0.95],
    "feline animals": [0.85, 0.2, 0.05],
    "dogs bark": [0.6, 0.6, 0.1],
    "q": [1.0, 0.0, 0.0],
}

CATS = {"id": "a", "content": "cats are mammals"}
ROCKETS = {"id": "b", "content": "rockets use fuel"}
DOGS = {"id": "c", "content": "dogs bark"}


def make_store(
    provider: Optional[EmbeddingProvider] = None, **config_overrides: object
) -> SemanticStore:
    provider = provider or StaticEmbeddingProvider(VECTORS)
    asyncio.run(provider.initialize())
    return SemanticStore(provider, MockConfig.with_overrides(**config_overrides))


def populated_store(*records: dict, **config_overrides: object) -> SemanticStore:
    store = make_store(**config_overrides)
    asyncio.run(store.add_documents(list(records))).unwrap()
    return store


class TestIngestion:
    def test_add_documents(self) -> None:
        store = make_store()
        result = asyncio.run(store.add_documents([CATS, ROCKETS]))
        assert result.unwrap() == 2
        assert store.size == 2
        assert store.is_ready
        assert [d.id for d in store.documents] == ["a", "b"]
        assert store.embeddings == (VECTORS["cats are mammals"], VECTORS["rockets use fuel"])

    def test_accepts_document_objects(self) -> None:
        store = make_store()
        doc = Document(id="x", content="dogs bark", metadata={"topic": "pets"})
        asyncio.run(store.add_documents([doc])).unwrap()
        assert store.documents == (doc,)

    def test_missing_ids_are_generated(self) -> None:
        store = populated_store({"content": "cats are mammals"}, {"content": "dogs bark"})
        assert [d.id for d in store.documents] == ["doc_0", "doc_1"]
        assert store.documents[0].metadata == {}

    def test_empty_input_leaves_ready_unchanged(self) -> None:
        store = make_store()
        assert asyncio.run(store.add_documents([])).unwrap() == 0
        assert not store.is_ready
        assert store.size == 0

    def test_duplicate_ids_coexist(self) -> None:
        store = populated_store(CATS, CATS)
        assert store.size == 2
        assert [d.id for d in store.documents] == ["a", "a"]

    def test_progress_once_per_document_in_order(self) -> None:
        store = make_store()
        events: list[Progress] = []
        asyncio.run(store.add_documents([CATS, ROCKETS, DOGS], events.append))
        assert [e.percent for e in events] == [33, 67, 100]
        assert {e.status for e in events} == {"indexing"}
        assert events[0].message == "Indexing document 1/3"

    def test_partial_ingestion_keeps_earlier_documents(self) -> None:
        provider = StaticEmbeddingProvider(VECTORS, failing=frozenset({"rockets use fuel"}))
        store = make_store(provider)
        events: list[Progress] = []

        result = asyncio.run(store.add_documents([CATS, ROCKETS, DOGS], events.append))

        assert result.is_err()
        error = result.error
        assert isinstance(error, PartialIngestionError)
        assert error.documents_indexed == 1
        assert error.document_id == "b"
        assert isinstance(error.cause, EmbeddingError)
        assert store.size == 1
        assert len(store.embeddings) == len(store.documents)
        assert store.is_ready
        assert [e.percent for e in events] == [33]

    def test_failure_on_first_document_leaves_store_not_ready(self) -> None:
        provider = StaticEmbeddingProvider(VECTORS, failing=frozenset({"cats are mammals"}))
        store = make_store(provider)
        result = asyncio.run(store.add_documents([CATS, ROCKETS]))
        assert result.error.documents_indexed == 0
        assert store.size == 0
        assert not store.is_ready

    def test_uninitialized_provider(self) -> None:
        store = SemanticStore(StaticEmbeddingProvider(VECTORS), MockConfig.default())
        result = asyncio.run(store.add_documents([CATS]))
        assert isinstance(result.error, PartialIngestionError)
        assert isinstance(result.error.cause, NotInitializedError)
        assert store.size == 0

    def test_dimension_mismatch(self) -> None:
        vectors = dict(VECTORS, **{"dogs bark": [1.0, 0.0]})
        store = make_store(StaticEmbeddingProvider(vectors))
        result = asyncio.run(store.add_documents([CATS, DOGS]))
        assert isinstance(result.error.cause, EmbeddingError)
        assert store.size == 1

    def test_concurrent_ingestion_preserves_order(self) -> None:
        provider = StaticEmbeddingProvider(
            VECTORS,
            delays={"cats are mammals": 0.03, "rockets use fuel": 0.02, "dogs bark": 0.0},
        )
        store = make_store(provider, ingest_concurrency=3)
        events: list[Progress] = []
        asyncio.run(store.add_documents([CATS, ROCKETS, DOGS], events.append)).unwrap()

        assert [d.id for d in store.documents] == ["a", "b", "c"]
        for document, vector in zip(store.documents, store.embeddings):
            assert vector == VECTORS[document.content]
        assert [e.percent for e in events] == [33, 67, 100]

    def test_concurrent_ingestion_failure_is_still_ordered(self) -> None:
        provider = StaticEmbeddingProvider(
            VECTORS,
            failing=frozenset({"rockets use fuel"}),
            delays={"cats are mammals": 0.02},
        )
        store = make_store(provider, ingest_concurrency=3)
        result = asyncio.run(store.add_documents([CATS, ROCKETS, DOGS]))
        assert result.error.documents_indexed == 1
        assert [d.id for d in store.documents] == ["a"]

    def test_blank_content_is_indexed(self) -> None:
        provider = StaticEmbeddingProvider({**VECTORS, "   ": [0.0, 0.0, 0.0]})
        store = make_store(provider)
        result = asyncio.run(store.add_documents([{"id": "x", "content": "   "}, CATS]))
        assert result.unwrap() == 2
        ranked = asyncio.run(store.search("q", 2)).unwrap()
        assert [r.document.id for r in ranked] == ["a", "x"]
        assert ranked[1].score == INVALID_SCORE


class TestSearch:
    def test_empty_store(self) -> None:
        store = make_store()
        result = asyncio.run(store.search("x", 3))
        assert isinstance(result.error, EmptyStoreError)

    def test_empty_store_after_failed_ingestion(self) -> None:
        provider = StaticEmbeddingProvider(VECTORS, failing=frozenset({"cats are mammals"}))
        store = make_store(provider)
        asyncio.run(store.add_documents([CATS]))
        assert isinstance(asyncio.run(store.search("q", 1)).error, EmptyStoreError)

    def test_closest_document_first(self) -> None:
        store = populated_store(CATS, ROCKETS)
        results = asyncio.run(store.search("feline animals", 1)).unwrap()
        assert len(results) == 1
        assert results[0].document.id == "a"

        both = asyncio.run(store.search("feline animals", 2)).unwrap()
        assert both[0].score > both[1].score
        assert both[1].document.id == "b"

    def test_top_k_larger_than_store(self) -> None:
        store = populated_store(CATS, ROCKETS, DOGS)
        results = asyncio.run(store.search("q", 10)).unwrap()
        assert len(results) == 3

    def test_default_top_k_from_config(self) -> None:
        store = populated_store(CATS, ROCKETS, DOGS, top_k=2)
        assert len(asyncio.run(store.search("q")).unwrap()) == 2

    @pytest.mark.parametrize("top_k", [0, -1, True, 1.5])
    def test_invalid_top_k(self, top_k: object) -> None:
        store = populated_store(CATS)
        with pytest.raises(ValueError):
            asyncio.run(store.search("q", top_k))  # type: ignore[arg-type]

    def test_provider_not_ready_is_distinct_from_empty(self) -> None:
        provider = StaticEmbeddingProvider(VECTORS)
        store = make_store(provider)
        asyncio.run(store.add_documents([CATS])).unwrap()
        provider._state = ProviderState.UNINITIALIZED

        result = asyncio.run(store.search("q", 1))
        assert isinstance(result.error, NotInitializedError)
        assert not isinstance(result.error, EmptyStoreError)

    def test_ties_broken_by_insertion_order(self) -> None:
        store = populated_store(
            {"id": "first", "content": "q"},
            {"id": "other", "content": "rockets use fuel"},
            {"id": "second", "content": "q"},
        )
        results = asyncio.run(store.search("q", 3)).unwrap()
        assert [r.document.id for r in results] == ["first", "second", "other"]
        assert results[0].score == results[1].score

    def test_zero_norm_document_ranks_last(self) -> None:
        vectors = dict(VECTORS, **{"blank": [0.0, 0.0, 0.0]})
        store = make_store(StaticEmbeddingProvider(vectors))
        asyncio.run(store.add_documents([{"id": "z", "content": "blank"}, ROCKETS])).unwrap()
        results = asyncio.run(store.search("q", 2)).unwrap()
        assert results[-1].document.id == "z"
        assert results[-1].score == INVALID_SCORE

    def test_search_is_deterministic(self) -> None:
        store = populated_store(CATS, ROCKETS, DOGS)
        first = asyncio.run(store.search("feline animals", 3)).unwrap()
        second = asyncio.run(store.search("feline animals", 3)).unwrap()
        assert first == second

    def test_self_similarity_ranks_first(self) -> None:
        provider = MockEmbeddingProvider(dimensions=64)
        store = make_store(provider)
        corpus = [
            {"id": "py", "content": "Python uses indentation to define code blocks"},
            {"id": "css", "content": "Flexbox and Grid are CSS layout systems"},
            {"id": "gpu", "content": "WebGPU exposes the GPU to web pages"},
        ]
        asyncio.run(store.add_documents(corpus)).unwrap()
        for record in corpus:
            results = asyncio.run(store.search(record["content"], 1)).unwrap()
            assert results[0].document.id == record["id"]
            assert results[0].score == pytest.approx(1.0)

    @settings(max_examples=25, deadline=None)
    @given(
        texts=st.lists(st.text(min_size=1, max_size=30).filter(str.strip), min_size=1, max_size=12),
        top_k=st.integers(min_value=1, max_value=15),
    )
    def test_results_sorted_and_sized(self, texts: list[str], top_k: int) -> None:
        store = make_store(MockEmbeddingProvider(dimensions=16))
        asyncio.run(store.add_documents([{"content": t} for t in texts])).unwrap()
        assert len(store.documents) == len(store.embeddings) == len(texts)

        results = asyncio.run(store.search("some query", top_k)).unwrap()
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(results) == min(top_k, len(texts))


class TestContext:
    def test_labels_in_ranked_order(self) -> None:
        store = populated_store(ROCKETS, CATS)
        context = asyncio.run(store.get_context("q", 2)).unwrap()
        assert context == "[Source 1] cats are mammals\n\n[Source 2] rockets use fuel"

    def test_empty_store(self) -> None:
        store = make_store()
        assert isinstance(asyncio.run(store.get_context("q", 2)).error, EmptyStoreError)

    def test_format_context_empty(self) -> None:
        assert format_context([]) == ""


class TestLifecycle:
    def test_clear(self) -> None:
        store = populated_store(CATS, ROCKETS)
        store.clear()
        assert store.size == 0
        assert store.embeddings == ()
        assert not store.is_ready
        assert isinstance(asyncio.run(store.search("q", 1)).error, EmptyStoreError)

    def test_clear_is_idempotent(self) -> None:
        store = make_store()
        store.clear()
        store.clear()
        assert store.size == 0
        assert not store.is_ready

    def test_ingest_after_clear(self) -> None:
        store = populated_store(CATS)
        store.clear()
        asyncio.run(store.add_documents([ROCKETS])).unwrap()
        assert [d.id for d in store.documents] == ["b"]
        assert store.is_ready
