"""Tests for the embedding/generation client layer."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from replydesk.core import LLMException, ConfigurationException
from replydesk.infrastructure.llm import (
    MockLLMClient,
    OpenAILLMClient,
    create_llm_client,
)


def embedding_response(vectors, reverse: bool = False):
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    if reverse:
        data.reverse()
    return SimpleNamespace(data=data)


@pytest.fixture
def openai_client():
    with patch("replydesk.infrastructure.llm.AsyncOpenAI") as mock_class:
        sdk = mock_class.return_value
        sdk.embeddings.create = AsyncMock()
        sdk.chat.completions.create = AsyncMock()
        client = OpenAILLMClient(api_key="sk-test", batch_size=2)
        yield client, sdk


class TestGenerateEmbeddings:
    """Tests for batched embedding generation."""

    async def test_batches_and_preserves_order(self, openai_client):
        client, sdk = openai_client
        sdk.embeddings.create.side_effect = [
            embedding_response([[1.0, 0.0], [2.0, 0.0]], reverse=True),
            embedding_response([[3.0, 0.0]]),
        ]

        results = await client.generate_embeddings(["a", "b", "c"])

        assert sdk.embeddings.create.await_count == 2
        assert sdk.embeddings.create.await_args_list[0].kwargs["input"] == ["a", "b"]
        assert sdk.embeddings.create.await_args_list[1].kwargs["input"] == ["c"]
        assert [r.embedding[0] for r in results] == [1.0, 2.0, 3.0]

    async def test_failed_batch_fails_whole_call(self, openai_client):
        client, sdk = openai_client
        sdk.embeddings.create.side_effect = [
            embedding_response([[1.0], [2.0]]),
            RuntimeError("upstream 502"),
        ]

        with pytest.raises(LLMException) as exc_info:
            await client.generate_embeddings(["a", "b", "c"])

        assert "Embedding generation failed" in exc_info.value.message
        assert exc_info.value.details["batch_offset"] == 2

    async def test_vector_count_mismatch_is_an_error(self, openai_client):
        client, sdk = openai_client
        sdk.embeddings.create.return_value = embedding_response([[1.0]])

        with pytest.raises(LLMException):
            await client.generate_embeddings(["a", "b"])

    async def test_empty_input_makes_no_calls(self, openai_client):
        client, sdk = openai_client

        assert await client.generate_embeddings([]) == []
        sdk.embeddings.create.assert_not_awaited()


class TestChatCompletion:
    """Tests for chat completion."""

    async def test_returns_content_and_usage(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Your order shipped."))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=8, total_tokens=128),
        )

        result = await client.chat_completion(
            [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]
        )

        assert result.content == "Your order shipped."
        assert result.total_tokens == 128

    async def test_failure_raises_llm_exception(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.side_effect = RuntimeError("timeout")

        with pytest.raises(LLMException) as exc_info:
            await client.chat_completion([{"role": "user", "content": "hi"}])

        assert "Chat completion failed" in exc_info.value.message


class TestMockClient:
    """Tests for the deterministic mock client."""

    async def test_embeddings_are_deterministic_and_normalized(self):
        client = MockLLMClient(dimension=32)

        first = await client.generate_embedding("Where is my order?")
        second = await client.generate_embedding("where is my ORDER")

        assert first.embedding == second.embedding
        assert sum(v * v for v in first.embedding) == pytest.approx(1.0)

    async def test_escalates_without_documentation(self):
        client = MockLLMClient(dimension=8)

        result = await client.chat_completion([
            {"role": "system", "content": "KNOWLEDGE BASE:\nNo relevant documentation found for this query."},
            {"role": "user", "content": "Can I pay with crypto?"},
        ])

        assert "specialist" in result.content
        assert len(client.chat_calls) == 1


class TestFactory:
    """Tests for create_llm_client."""

    def test_mock_provider(self):
        assert isinstance(create_llm_client("mock"), MockLLMClient)

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationException):
            create_llm_client("bard")

    def test_openai_requires_key(self):
        with patch("replydesk.infrastructure.llm.settings") as mock_settings:
            mock_settings.openai_api_key = None
            mock_settings.embedding_batch_size = 20
            with pytest.raises(ConfigurationException):
                OpenAILLMClient()
