"""CLI interface for the retrieval engine.

Provides command-line access to engine operations:
- demo: Index the built-in knowledge base and answer a question
- search: Print the top-k documents for a query as JSON
- context: Print the labeled context string for a query
- ask: Answer a question grounded in retrieved context
- serve: Start the FastAPI server

Every command indexes a corpus first: the built-in knowledge base, or a
JSON file given with ``--corpus``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import math
import sys
from typing import Any, Optional

from src.rag.config import RAGConfig
from src.rag.document import Progress
from src.rag.knowledge_base import KNOWLEDGE_BASE, load_corpus
from src.rag.logging_config import setup_logging
from src.rag.pipeline import RAGPipeline


def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point."""
    config = RAGConfig()

    parser = argparse.ArgumentParser(
        description="Semantic Retrieval Engine - embedding-indexed search for RAG"
    )
    parser.add_argument("--corpus", default=None, help="JSON corpus file to index")
    parser.add_argument("--log-level", default=None, help="Override RAG_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    demo_parser = subparsers.add_parser("demo", help="Run a complete demo")
    demo_parser.add_argument(
        "--question",
        default="What is RAG and why is it useful for LLMs?",
        help="Question to demo",
    )

    search_parser = subparsers.add_parser("search", help="Search the corpus")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "--top-k", type=positive_int, default=config.top_k, help="Number of documents"
    )

    context_parser = subparsers.add_parser("context", help="Render retrieval context")
    context_parser.add_argument("query", help="Search query")
    context_parser.add_argument(
        "--top-k", type=positive_int, default=config.context_top_k, help="Number of documents"
    )

    ask_parser = subparsers.add_parser("ask", help="Answer a question")
    ask_parser.add_argument("question", help="Question to ask")
    ask_parser.add_argument(
        "--top-k", type=positive_int, default=config.context_top_k, help="Number of documents"
    )
    ask_parser.add_argument("--stream", action="store_true", help="Stream the answer")

    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--host", default=config.api_host, help="Host (RAG_API_HOST)")
    serve_parser.add_argument(
        "--port", type=int, default=config.api_port, help="Port (RAG_API_PORT)"
    )

    args = parser.parse_args(argv)
    setup_logging(args.log_level or config.log_level)

    if args.command == "serve":
        run_serve(args.host, args.port)
        return

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    records = load_corpus(args.corpus) if args.corpus else KNOWLEDGE_BASE
    if args.command == "demo":
        exit_code = asyncio.run(run_demo(args.question, records, config))
    elif args.command == "search":
        exit_code = asyncio.run(run_search(args.query, args.top_k, records, config))
    elif args.command == "context":
        exit_code = asyncio.run(run_context(args.query, args.top_k, records, config))
    else:
        exit_code = asyncio.run(
            run_ask(args.question, args.top_k, args.stream, records, config)
        )
    if exit_code:
        sys.exit(exit_code)


async def _prepare(
    records: list[dict[str, Any]], config: Optional[RAGConfig], verbose: bool = False
) -> Optional[RAGPipeline]:
    """Build a pipeline, load the model and index the corpus."""
    pipeline = RAGPipeline(config or RAGConfig())

    def show(event: Progress) -> None:
        if verbose:
            print(f"      [{event.percent:3d}%] {event.message}")

    init_result = await pipeline.initialize(show)
    if init_result.is_err():
        print(f"ERROR: {init_result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return None

    ingest_result = await pipeline.ingest(records, show)
    if ingest_result.is_err():
        print(f"ERROR: {ingest_result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return None
    return pipeline


async def run_demo(
    question: str,
    records: list[dict[str, Any]] = KNOWLEDGE_BASE,
    config: Optional[RAGConfig] = None,
) -> int:
    """Run a complete demo with the knowledge base."""
    print("=" * 60)
    print("Semantic Retrieval Engine - Demo")
    print("=" * 60)
    print()

    print(f"[1/3] Loading model and indexing {len(records)} documents...")
    pipeline = await _prepare(records, config, verbose=True)
    if pipeline is None:
        return 1
    print(f"      Indexed {pipeline.document_count} documents")
    print()

    print(f'[2/3] Question: "{question}"')
    print()

    result = await pipeline.answer(question)
    if result.is_err():
        print(f"ERROR: {result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return 1
    output = result.unwrap()

    print("[3/3] Results:")
    print("-" * 60)
    print(f"Answer: {output.answer}")
    print()
    print(f"Model: {output.model}")
    print(f"Latency: {output.latency_ms:.1f}ms")
    print(f"Sources: {len(output.sources)} documents retrieved")
    print()
    for i, source in enumerate(output.sources, 1):
        print(f"  [{i}] {source.document.id} (score: {source.score:.3f})")
        print(f"      {source.document.content[:100]}...")
        print()
    print("=" * 60)
    return 0


async def run_search(
    query: str,
    top_k: int,
    records: list[dict[str, Any]] = KNOWLEDGE_BASE,
    config: Optional[RAGConfig] = None,
) -> int:
    """Print the top-k documents for a query as JSON."""
    pipeline = await _prepare(records, config)
    if pipeline is None:
        return 1

    result = await pipeline.store.search(query, top_k=top_k)
    if result.is_err():
        print(f"ERROR: {result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return 1

    print(json.dumps({
        "query": query,
        "results": [
            {
                "id": r.document.id,
                "score": r.score if math.isfinite(r.score) else None,
                "metadata": r.document.metadata,
            }
            for r in result.unwrap()
        ],
    }, indent=2))
    return 0


async def run_context(
    query: str,
    top_k: int,
    records: list[dict[str, Any]] = KNOWLEDGE_BASE,
    config: Optional[RAGConfig] = None,
) -> int:
    """Print the labeled context string for a query."""
    pipeline = await _prepare(records, config)
    if pipeline is None:
        return 1

    result = await pipeline.store.get_context(query, top_k=top_k)
    if result.is_err():
        print(f"ERROR: {result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return 1
    print(result.unwrap())
    return 0


async def run_ask(
    question: str,
    top_k: int,
    stream: bool = False,
    records: list[dict[str, Any]] = KNOWLEDGE_BASE,
    config: Optional[RAGConfig] = None,
) -> int:
    """Answer a question, optionally streaming the answer."""
    pipeline = await _prepare(records, config)
    if pipeline is None:
        return 1

    if stream:
        async for chunk in pipeline.stream_answer(question, top_k=top_k):
            print(chunk, end="", flush=True)
        print()
        return 0

    result = await pipeline.answer(question, top_k=top_k)
    if result.is_err():
        print(f"ERROR: {result.error}", file=sys.stderr)  # type: ignore[union-attr]
        return 1

    output = result.unwrap()
    print(json.dumps({
        "answer": output.answer,
        "question": output.question,
        "model": output.model,
        "latency_ms": output.latency_ms,
        "sources": [s.document.id for s in output.sources],
    }, indent=2))
    return 0


def run_serve(host: str, port: int) -> None:
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("src.api.app:app", host=host, port=port)


if __name__ == "__main__":
    main()
