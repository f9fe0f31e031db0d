"""Tests for reply generation and prompt assembly."""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import httpx
import pytest

from conftest import ORDER_1001, shopify_factory
from replydesk.core import (
    GenerationException,
    LLMException,
    ResourceNotFoundException,
    ValidationException,
)
from replydesk.infrastructure.llm import ChatCompletionResult
from replydesk.infrastructure.vectorstore import ScoredChunk
from replydesk.knowledge.domain import Tenant
from replydesk.learning.domain import LearningRecord
from replydesk.replies.application import ReplyService
from replydesk.replies.domain import (
    ReplyPromptBuilder,
    SourceSnippet,
    extract_order_references,
)
from replydesk.replies.infrastructure import OrderLookupService

SHIPPING_POLICY = (
    "International shipping takes seven to fourteen business days. "
    "Every international parcel ships with a tracking number."
)


def storefront(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/fulfillments.json"):
        return httpx.Response(200, json={"fulfillments": []})
    if request.url.params.get("name") == "#1001":
        return httpx.Response(200, json={"orders": [ORDER_1001]})
    return httpx.Response(200, json={"orders": []})


@pytest.fixture
def make_service(ingestion_service, chunk_store, llm_client, learning_cache, tenant_repository):
    def build(handler=storefront, order_lookup=None) -> ReplyService:
        lookup = order_lookup or OrderLookupService(
            tenant_repository, client_factory=shopify_factory(handler)
        )
        return ReplyService(ingestion_service, chunk_store, llm_client, learning_cache, lookup)
    return build


def system_prompt(llm_client) -> str:
    return llm_client.chat_calls[-1][0]["content"]


class TestGenerate:
    """Tests for ReplyService.generate."""

    async def test_empty_knowledge_base_offers_escalation(self, make_service, llm_client, tenant):
        reply = await make_service().generate(tenant.id, "Do you sell gift cards?")

        assert reply.has_knowledge_base is False
        assert reply.sources == []
        assert reply.reply
        prompt = system_prompt(llm_client)
        assert "No relevant documentation found for this query." in prompt
        assert "offer to escalate" in prompt

    async def test_uses_retrieved_knowledge(
        self, make_service, ingestion_service, llm_client, tenant
    ):
        await ingestion_service.ingest(tenant.id, "Shipping", SHIPPING_POLICY)

        reply = await make_service().generate(
            tenant.id, "How long does international shipping take?", tone="friendly"
        )

        assert reply.has_knowledge_base is True
        assert len(reply.sources) == 1
        assert 0 < reply.sources[0].similarity <= 100
        prompt = system_prompt(llm_client)
        assert SHIPPING_POLICY in prompt
        assert ReplyPromptBuilder.TONE_INSTRUCTIONS["friendly"] in prompt

    async def test_sends_exactly_system_and_user_messages(self, make_service, llm_client, tenant):
        await make_service().generate(tenant.id, "Where is my parcel?")

        messages = llm_client.chat_calls[-1]
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "Where is my parcel?"

    async def test_live_order_counts_as_knowledge(self, make_service, llm_client, tenant):
        reply = await make_service().generate(tenant.id, "Where is order #1001?")

        assert reply.order_references == ["1001"]
        assert reply.has_knowledge_base is True
        assert reply.sources == []
        prompt = system_prompt(llm_client)
        assert "LIVE ORDER INFORMATION" in prompt
        assert "Order #1001:" in prompt
        assert "offer to escalate" not in prompt

    async def test_failed_order_lookup_still_replies(self, make_service, llm_client, tenant):
        service = make_service(handler=lambda request: httpx.Response(503))

        reply = await service.generate(tenant.id, "Where is order #1001?")

        assert reply.reply
        assert reply.has_knowledge_base is False
        assert "LIVE ORDER INFORMATION" not in system_prompt(llm_client)

    async def test_order_lookup_error_is_not_raised(self, make_service, tenant):
        lookup = AsyncMock()
        lookup.lookup_for_tenant.side_effect = RuntimeError("storefront down")

        reply = await make_service(order_lookup=lookup).generate(tenant.id, "Status of #1001 please")

        assert reply.reply
        lookup.lookup_for_tenant.assert_awaited_once()

    async def test_tenant_without_storefront_skips_lookup(self, make_service, other_tenant):
        lookup = AsyncMock()

        await make_service(order_lookup=lookup).generate(other_tenant.id, "Where is order #1001?")

        lookup.lookup_for_tenant.assert_not_awaited()

    async def test_includes_similar_past_tickets(
        self, make_service, learning_cache, llm_client, tenant
    ):
        learning_cache.put(tenant.id, [LearningRecord(
            ticket_id=7,
            subject="Zipper broken",
            customer_message="The zipper on my jacket broke",
            agent_replies=["We will send a replacement zipper pull."],
        )])

        reply = await make_service().generate(tenant.id, "My jacket zipper broke yesterday")

        assert reply.similar_tickets_used == 1
        assert "SIMILAR PAST TICKETS:" in system_prompt(llm_client)
        assert "replacement zipper pull" in system_prompt(llm_client)

    async def test_tenant_custom_instructions_apply_by_default(
        self, make_service, tenant_repository, llm_client
    ):
        tenant = await tenant_repository.create(Tenant(
            id=str(uuid4()), name="Initech", custom_instructions="Always mention free returns."
        ))

        await make_service().generate(tenant.id, "Can I return this?")
        assert "Always mention free returns." in system_prompt(llm_client)

        await make_service().generate(tenant.id, "Can I return this?", custom_instructions="Offer store credit.")
        assert "Offer store credit." in system_prompt(llm_client)
        assert "Always mention free returns." not in system_prompt(llm_client)

    async def test_generation_failure(self, make_service, llm_client, tenant):
        with patch.object(
            llm_client, "chat_completion", AsyncMock(side_effect=LLMException("rate limited"))
        ):
            with pytest.raises(GenerationException) as exc_info:
                await make_service().generate(tenant.id, "Hello?")

        assert exc_info.value.message.startswith("Generation failed:")
        assert "rate limited" in exc_info.value.message
        assert exc_info.value.status_code == 500

    async def test_empty_model_reply_is_a_failure(self, make_service, llm_client, tenant):
        empty = ChatCompletionResult("  ", "mock-model", 10, 0, 1)
        with patch.object(llm_client, "chat_completion", AsyncMock(return_value=empty)):
            with pytest.raises(GenerationException):
                await make_service().generate(tenant.id, "Hello?")

    async def test_invalid_tone(self, make_service, tenant):
        with pytest.raises(ValidationException):
            await make_service().generate(tenant.id, "Hello?", tone="sarcastic")

    async def test_missing_message(self, make_service, tenant):
        with pytest.raises(ValidationException):
            await make_service().generate(tenant.id, "   ")

    async def test_unknown_tenant(self, make_service):
        with pytest.raises(ResourceNotFoundException):
            await make_service().generate(str(uuid4()), "Hello?")


class TestPromptBuilder:
    """Tests for ReplyPromptBuilder."""

    def chunk(self, content: str, similarity: float) -> ScoredChunk:
        return ScoredChunk(chunk_id="c", document_id="d", content=content, similarity=similarity)

    def test_sections_in_priority_order(self):
        prompt = ReplyPromptBuilder.build_system_prompt(
            tone="concise",
            chunks=[self.chunk("KB-LOW", 0.4), self.chunk("KB-HIGH", 0.9)],
            order_text="Order #1001:",
            similar_tickets=[LearningRecord(1, "s", "past question", ["past answer"])],
            custom_instructions="CUSTOM",
            one_time_instructions="ONE-TIME",
        )

        positions = [
            prompt.index("ONE-TIME"),
            prompt.index("CUSTOM"),
            prompt.index("Order #1001:"),
            prompt.index("past question"),
            prompt.index("KB-HIGH"),
            prompt.index("KB-LOW"),
        ]
        assert positions == sorted(positions)

    def test_base_rules_present(self):
        prompt = ReplyPromptBuilder.build_system_prompt("professional", [])

        assert "Never make up information" in prompt
        assert "DO NOT include any signature" in prompt
        assert "short acknowledgement" in prompt

    def test_unknown_tone_falls_back_to_professional(self):
        assert ReplyPromptBuilder.tone_instruction("pirate") == ReplyPromptBuilder.TONE_INSTRUCTIONS["professional"]

    def test_blank_instructions_are_omitted(self):
        prompt = ReplyPromptBuilder.build_system_prompt(
            "professional", [], custom_instructions="  ", one_time_instructions=""
        )

        assert "ADDITIONAL INSTRUCTIONS" not in prompt
        assert "INSTRUCTIONS FOR THIS REPLY ONLY" not in prompt


class TestDomainHelpers:
    """Tests for snippets and order-reference extraction."""

    def test_snippet_is_truncated_and_similarity_is_percent(self):
        chunk = ScoredChunk("c", "d", "x" * 200, 0.8749)

        source = SourceSnippet.from_chunk(chunk)

        assert source.snippet == "x" * 150 + "..."
        assert source.similarity == 87

    def test_short_snippet_is_not_marked_truncated(self):
        assert SourceSnippet.from_chunk(ScoredChunk("c", "d", "short", 1.0)).snippet == "short"

    @pytest.mark.parametrize("message,expected", [
        ("Where is #1001?", ["1001"]),
        ("order 2002 and order number: 3003", ["2002", "3003"]),
        ("Order no. 4004, also #4004 again", ["4004"]),
        ("I have 2 items and #12", []),
        ("#1 #2 #1001 #1002 #1003 #1004", ["1001", "1002", "1003"]),
    ])
    def test_extract_order_references(self, message, expected):
        assert extract_order_references(message) == expected
