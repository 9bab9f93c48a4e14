"""Built-in knowledge corpus and JSON corpus loading.

A corpus is an ordered list of ``{id?, content, metadata?}`` records. The
records are handed to ``SemanticStore.add_documents`` unchanged.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from src.rag.logging_config import get_logger

logger = get_logger(__name__)


class CorpusEntry(BaseModel):
    """A single corpus record."""

    id: Optional[str] = Field(default=None, description="Unique id, generated when missing")
    content: str = Field(..., description="Document text content")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Optional metadata")

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


_CORPUS_ADAPTER = TypeAdapter(list[CorpusEntry])


def load_corpus(path: Union[str, Path]) -> list[dict[str, Any]]:
    """Load and validate a JSON array of corpus records.

    Raises:
        FileNotFoundError: if the file does not exist
        pydantic.ValidationError: if a record is malformed
    """
    path = Path(path)
    entries = _CORPUS_ADAPTER.validate_python(json.loads(path.read_text(encoding="utf-8")))
    logger.info("Loaded %d corpus records from %s", len(entries), path)
    return [entry.to_record() for entry in entries]


KNOWLEDGE_BASE: list[dict[str, Any]] = [
    {
        "id": "python_basics",
        "content": (
            "Python is a high-level, interpreted programming language known for its "
            "simple and readable syntax. It was created by Guido van Rossum and first "
            "released in 1991. Python supports procedural, object-oriented and "
            "functional programming."
        ),
        "metadata": {"topic": "Python", "subtopic": "Basics"},
    },
    {
        "id": "python_syntax",
        "content": (
            "In Python, indentation defines code blocks instead of curly braces. The "
            "standard indentation is 4 spaces. Python uses dynamic typing, so variable "
            "types do not need to be declared."
        ),
        "metadata": {"topic": "Python", "subtopic": "Syntax"},
    },
    {
        "id": "python_data_types",
        "content": (
            "Python has built-in data types such as int, float, str, bool, lists "
            "(mutable sequences), tuples (immutable sequences), dictionaries (key-value "
            "pairs) and sets (unique unordered collections)."
        ),
        "metadata": {"topic": "Python", "subtopic": "Data Types"},
    },
    {
        "id": "ml_basics",
        "content": (
            "Machine learning lets systems learn from experience without being "
            "explicitly programmed. Supervised learning uses labeled data, unsupervised "
            "learning finds patterns in unlabeled data, and reinforcement learning "
            "learns through trial and error with rewards."
        ),
        "metadata": {"topic": "Machine Learning", "subtopic": "Basics"},
    },
    {
        "id": "ml_neural_networks",
        "content": (
            "Neural networks are layers of interconnected nodes inspired by biological "
            "neurons. Convolutional neural networks (CNNs) are used for images and "
            "recurrent neural networks (RNNs) for sequences."
        ),
        "metadata": {"topic": "Machine Learning", "subtopic": "Neural Networks"},
    },
    {
        "id": "llm_transformers",
        "content": (
            "The Transformer architecture, introduced in 'Attention Is All You Need' "
            "(2017), uses self-attention to process all input tokens in parallel. Key "
            "components are multi-head attention, positional encoding and feed-forward "
            "layers."
        ),
        "metadata": {"topic": "LLM", "subtopic": "Transformers"},
    },
    {
        "id": "llm_rag",
        "content": (
            "Retrieval-Augmented Generation (RAG) retrieves relevant documents from a "
            "knowledge base and includes them in the prompt context of a language model. "
            "This reduces hallucinations and adds domain knowledge without fine-tuning."
        ),
        "metadata": {"topic": "LLM", "subtopic": "RAG"},
    },
    {
        "id": "llm_prompting",
        "content": (
            "Prompt engineering designs prompts that get useful outputs from language "
            "models. Techniques include zero-shot prompting, few-shot prompting, "
            "chain-of-thought prompting and system prompts."
        ),
        "metadata": {"topic": "LLM", "subtopic": "Prompting"},
    },
    {
        "id": "ds_pandas",
        "content": (
            "Pandas is a Python library for data manipulation and analysis. Its main "
            "data structures are the DataFrame (2D table) and the Series (1D array). "
            "Common operations are read_csv, filtering, groupby, merge and aggregation."
        ),
        "metadata": {"topic": "Data Science", "subtopic": "Pandas"},
    },
    {
        "id": "ds_numpy",
        "content": (
            "NumPy is the fundamental package for numerical computing in Python. It "
            "provides the ndarray with broadcasting, vectorized operations, linear "
            "algebra and random number generation."
        ),
        "metadata": {"topic": "Data Science", "subtopic": "NumPy"},
    },
    {
        "id": "web_css",
        "content": (
            "CSS controls the visual presentation of HTML. Flexbox handles "
            "one-dimensional layouts, Grid handles two-dimensional layouts, and media "
            "queries enable responsive design."
        ),
        "metadata": {"topic": "Web Development", "subtopic": "CSS"},
    },
    {
        "id": "webgpu_basics",
        "content": (
            "WebGPU is a web API that gives access to GPU capabilities for rendering "
            "and computation. It succeeds WebGL and lets machine learning models run "
            "in the browser with GPU acceleration."
        ),
        "metadata": {"topic": "WebGPU", "subtopic": "Basics"},
    },
]
