"""RAG core module - configuration, documents and embedding providers.

The pipeline lives in ``src.rag.pipeline``.
"""

from src.rag.config import RAGConfig, MockConfig
from src.rag.document import Document, SearchResult
from src.rag.embeddings import EmbeddingProvider, create_embedding_provider
from src.rag.result import Result, Ok, Err

__all__ = [
    "RAGConfig",
    "MockConfig",
    "Document",
    "SearchResult",
    "EmbeddingProvider",
    "create_embedding_provider",
    "Result",
    "Ok",
    "Err",
]
