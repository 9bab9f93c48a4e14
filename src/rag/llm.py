"""LLM providers with dependency injection for mock mode.

Supports:
- OpenAI LLM (production)
- Mock LLM (demo/testing - returns template-based responses)

The retrieval engine never calls a language model itself; the pipeline hands
a prompt built around ``SemanticStore.get_context`` to one of these.
"""

from __future__ import annotations

import hashlib
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from src.rag.config import RAGConfig, RunMode
from src.rag.logging_config import get_logger
from src.rag.result import Err, Ok, Result

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Sampling parameters for one generation call."""

    temperature: float = 0.7
    max_tokens: int = 500
    top_p: float = 0.95

    @classmethod
    def from_config(cls, config: RAGConfig) -> GenerationOptions:
        return cls(
            temperature=config.llm_temperature,
            max_tokens=config.llm_max_tokens,
            top_p=config.llm_top_p,
        )


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    @abstractmethod
    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> Result[str, str]:
        """Generate a full response for a prompt."""
        ...

    @abstractmethod
    def generate_stream(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AsyncIterator[str]:
        """Yield the response as incremental chunks."""
        ...


class MockLLMProvider(LLMProvider):
    """Deterministic mock LLM for testing and demos.

    Builds a plausible-looking answer from the context section of the prompt.
    """

    TEMPLATES = [
        "Based on the provided context, {summary}. The key information comes from "
        "{source_count} retrieved source(s).",
        "According to the available sources, {summary}. This is supported by "
        "{source_count} retrieved passage(s).",
        "The retrieved context indicates that {summary}. {source_count} source(s) "
        "corroborate this.",
    ]

    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> Result[str, str]:
        try:
            return Ok(self._answer(prompt))
        except Exception as e:
            return Err(f"Mock generation failed: {e}")

    async def generate_stream(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AsyncIterator[str]:
        words = self._answer(prompt).split(" ")
        for i, word in enumerate(words):
            yield word if i == 0 else f" {word}"

    def _answer(self, prompt: str) -> str:
        source_count = prompt.count("[Source ")
        if source_count == 0:
            return (
                "I don't have enough context to answer this question. "
                "Please provide relevant documents first."
            )

        context = prompt.split("[Source 1]", 1)[1].split("\n\nQuestion:", 1)[0]
        words = re.sub(r"\[Source \d+\]", " ", context).split()
        summary = " ".join(list(dict.fromkeys(words))[:20])

        template_index = int(hashlib.md5(prompt.encode()).hexdigest()[:4], 16) % len(
            self.TEMPLATES
        )
        return self.TEMPLATES[template_index].format(
            summary=summary, source_count=source_count
        )


class OpenAILLMProvider(LLMProvider):
    """OpenAI API LLM provider for production use."""

    def __init__(self, config: RAGConfig) -> None:
        self._config = config

    def _client(self, options: GenerationOptions):  # type: ignore[no-untyped-def]
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=self._config.llm_model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            top_p=options.top_p,
            openai_api_key=self._config.openai_api_key,
        )

    async def generate(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> Result[str, str]:
        opts = options or GenerationOptions.from_config(self._config)
        try:
            response = await self._client(opts).ainvoke(prompt)
            return Ok(str(response.content))
        except ImportError:
            return Err("langchain-openai not installed")
        except Exception as e:
            logger.error("OpenAI generation failed: %s", e)
            return Err(f"OpenAI generation failed: {e}")

    async def generate_stream(
        self, prompt: str, options: Optional[GenerationOptions] = None
    ) -> AsyncIterator[str]:
        opts = options or GenerationOptions.from_config(self._config)
        async for chunk in self._client(opts).astream(prompt):
            content = str(chunk.content)
            if content:
                yield content


def create_llm_provider(config: RAGConfig) -> LLMProvider:
    """Factory function to create the appropriate LLM provider."""
    if config.mode in (RunMode.MOCK, RunMode.HYBRID):
        return MockLLMProvider()
    return OpenAILLMProvider(config)
