"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (OpenAI, Z.AI) providing a clean interface for the
two model calls the pipeline makes: text embeddings and chat completions.

Embeddings are requested in fixed-size batches. Order is preserved end to end
(input ``i`` always maps to vector ``i``) and a failing batch fails the whole
call, so callers never receive a partially embedded list.
"""

import hashlib
import math
import re
import time
from typing import List, Optional, Sequence
from abc import ABC, abstractmethod

from openai import AsyncOpenAI
from zai import ZaiClient

from replydesk.config import settings
from replydesk.core import LLMException, ConfigurationException
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Subclasses implement ``_embed_batch`` and ``chat_completion``; batching
    and ordering checks live here so every provider behaves the same.
    """

    def __init__(self, embedding_model: str, batch_size: Optional[int] = None):
        self._embedding_model = embedding_model
        self._batch_size = batch_size or settings.embedding_batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @abstractmethod
    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed one batch; must return vectors in input order."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def generate_embeddings(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        """
        Embed texts in batches of ``batch_size``.

        Args:
            texts: Texts to embed

        Returns:
            One EmbeddingResult per input text, in input order

        Raises:
            LLMException: If any batch fails or returns the wrong number of vectors
        """
        results: List[EmbeddingResult] = []

        for offset in range(0, len(texts), self._batch_size):
            batch = list(texts[offset:offset + self._batch_size])
            try:
                vectors = await self._embed_batch(batch)
            except LLMException:
                raise
            except Exception as e:
                raise LLMException(
                    f"Embedding generation failed: {str(e)}",
                    {"batch_offset": offset, "batch_size": len(batch)}
                )

            if len(vectors) != len(batch):
                raise LLMException(
                    f"Embedding batch returned {len(vectors)} vectors for {len(batch)} inputs",
                    {"batch_offset": offset}
                )

            results.extend(EmbeddingResult(v, self._embedding_model) for v in vectors)

        logger.debug(
            "Embeddings generated",
            extra={"texts": len(texts), "model": self._embedding_model}
        )
        return results

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate the embedding for a single text (used for queries)."""
        results = await self.generate_embeddings([text])
        return results[0]


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models and text-embedding-3.

    Provides async wrapper around OpenAI SDK operations.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        batch_size: Optional[int] = None
    ):
        super().__init__(settings.embedding_model, batch_size)
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        client_kwargs = {"api_key": self._api_key}
        if base_url or settings.openai_base_url:
            client_kwargs["base_url"] = base_url or settings.openai_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = settings.llm_model

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = await self._client.embeddings.create(
            model=self._embedding_model,
            input=texts
        )
        # The API reports each vector's input position; never trust list order alone
        ordered = sorted(response.data, key=lambda d: d.index)
        return [d.embedding for d in ordered]

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            operation: Operation name for logs (reply, ...)

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        usage = response.usage

        logger.info(
            "Chat completion finished",
            extra={
                "operation": operation,
                "model": self._model,
                "latency_ms": latency_ms,
                "total_tokens": usage.total_tokens if usage else None
            }
        )

        return ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=self._model,
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
            latency_ms=latency_ms
        )


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    Provides async wrapper around Z.AI SDK operations.
    """

    def __init__(self, api_key: Optional[str] = None, batch_size: Optional[int] = None):
        super().__init__(settings.embedding_model, batch_size)
        self._api_key = api_key or settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self._model = settings.llm_model

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        response = self._client.embeddings.create(
            model=self._embedding_model,
            input=texts
        )
        ordered = sorted(response.data, key=lambda d: d.index)
        return [d.embedding for d in ordered]

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        start_time = time.perf_counter()

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        content = response.choices[0].message.content or ""

        # Z.AI doesn't always return token usage, so we estimate
        return ChatCompletionResult(
            content=content,
            model=self._model,
            prompt_tokens=len(str(messages)),
            completion_tokens=len(content),
            latency_ms=latency_ms
        )


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Embeddings are hashed bag-of-words vectors: deterministic, and texts
    sharing words score a positive cosine similarity.
    """

    def __init__(self, dimension: Optional[int] = None, batch_size: Optional[int] = None):
        super().__init__("mock-embedding", batch_size)
        self._dimension = dimension or settings.embedding_dimension
        self.chat_calls: List[List[dict]] = []

    async def _embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self._hash_vector(text) for text in texts]

    def _hash_vector(self, text: str) -> List[float]:
        vector = [0.0] * self._dimension
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            digest = hashlib.sha256(token.encode()).hexdigest()
            vector[int(digest[:8], 16) % self._dimension] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm:
            vector = [v / norm for v in vector]
        return vector

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.7,
        max_tokens: int = 500,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        self.chat_calls.append(messages)
        system_prompt = str(messages[0].get("content", "")) if messages else ""

        if "No relevant documentation found" in system_prompt:
            content = (
                "Thanks for reaching out. I want to make sure you get an accurate answer, "
                "so I'm passing this to a specialist who will follow up shortly."
            )
        else:
            content = "Thanks for reaching out. Here is what I found about your request."

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=len(system_prompt.split()),
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def create_llm_client(provider: Optional[str] = None) -> ILLMClient:
    """Build the client for the configured provider."""
    provider = (provider or settings.llm_provider).lower()

    if provider == "openai":
        return OpenAILLMClient()
    if provider == "zai":
        return ZAIILLMClient()
    if provider == "mock":
        return MockLLMClient()

    raise ConfigurationException(f"Unknown LLM provider: {provider}")
