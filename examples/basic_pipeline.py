"""Basic retrieval example.

Demonstrates the initialize, ingest and search workflow using mock mode.
No model download or API key required.

Usage:
    python examples/basic_pipeline.py
"""

import asyncio

from src.rag.config import RAGConfig, RunMode
from src.rag.document import Progress
from src.rag.knowledge_base import KNOWLEDGE_BASE
from src.rag.pipeline import RAGPipeline


def show(event: Progress) -> None:
    print(f"  [{event.percent:3d}%] {event.message}")


async def main() -> None:
    # 1. Configure pipeline in mock mode (no downloads needed)
    pipeline = RAGPipeline(RAGConfig(mode=RunMode.MOCK, top_k=3))

    # 2. Load the embedding model
    init_result = await pipeline.initialize(show)
    if init_result.is_err():
        print(f"Model load failed: {init_result.error}")
        return

    # 3. Index the knowledge base
    ingest_result = await pipeline.ingest(KNOWLEDGE_BASE, show)
    if ingest_result.is_err():
        print(f"Ingest failed: {ingest_result.error}")
        return
    print(f"Indexed {ingest_result.unwrap()} documents")

    # 4. Search and answer
    queries = [
        "What is the difference between lists and tuples?",
        "How does the Transformer architecture work?",
        "What is WebGPU?",
    ]

    for query in queries:
        search_result = await pipeline.store.search(query)
        if search_result.is_err():
            print(f"\nQ: {query}\n   Error: {search_result.error}")
            continue

        print(f"\nQ: {query}")
        for hit in search_result.unwrap():
            print(f"   {hit.score:.3f}  {hit.document.id}")

        answer = (await pipeline.answer(query)).unwrap()
        print(f"A: {answer.answer[:200]}...")


if __name__ == "__main__":
    asyncio.run(main())
