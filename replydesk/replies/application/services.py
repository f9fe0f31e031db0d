"""
Replies Application Services
============================

Retrieve-then-generate pipeline for drafting a reply to one customer
message.

Order lookups are best effort: a failed lookup is logged and the reply is
drafted without that order. Retrieval and generation failures are raised;
no reply is ever returned that the model did not produce.
"""

import time
from typing import Optional

from replydesk.config import settings, VALID_TONES, ReplyTone
from replydesk.core import ValidationException, GenerationException
from replydesk.infrastructure.llm import ILLMClient
from replydesk.infrastructure.vectorstore import IChunkStore
from replydesk.knowledge.application import IngestionService
from replydesk.learning.application import LearningCache
from replydesk.replies.domain import (
    GeneratedReply,
    SourceSnippet,
    ReplyPromptBuilder,
    extract_order_references,
)
from replydesk.replies.infrastructure import OrderLookupService
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ReplyService:
    """
    Service for RAG-based reply generation.

    Orchestrates order lookup, vector search, similar-ticket matching and
    the generation model.
    """

    def __init__(
        self,
        ingestion_service: IngestionService,
        chunk_store: IChunkStore,
        llm_client: ILLMClient,
        learning_cache: LearningCache,
        order_lookup: Optional[OrderLookupService] = None
    ):
        self._ingestion = ingestion_service
        self._chunk_store = chunk_store
        self._llm = llm_client
        self._cache = learning_cache
        self._order_lookup = order_lookup

    async def generate(
        self,
        tenant_id: str,
        customer_message: str,
        tone: str = ReplyTone.PROFESSIONAL,
        custom_instructions: Optional[str] = None,
        one_time_instructions: Optional[str] = None
    ) -> GeneratedReply:
        """
        Draft a reply to a customer message.

        Args:
            tenant_id: Tenant whose knowledge is used
            customer_message: Inbound message text
            tone: professional, friendly or concise
            custom_instructions: Overrides the tenant's standing instructions
            one_time_instructions: Applied to this reply only, highest priority

        Returns:
            GeneratedReply with reply text and source snippets

        Raises:
            ValidationException: Missing fields or unknown tone
            ResourceNotFoundException: Unknown tenant
            LLMException: Embedding the message failed
            VectorStoreException: Search failed
            GenerationException: The generation model failed
        """
        start_time = time.perf_counter()

        if not tenant_id or not (customer_message or "").strip():
            raise ValidationException("tenant_id and customer_message are required")
        if tone not in VALID_TONES:
            raise ValidationException(
                f"tone must be one of {', '.join(VALID_TONES)}",
                {"tone": tone}
            )

        tenant = await self._ingestion.get_tenant(tenant_id)

        # 1. Live order data
        references = extract_order_references(customer_message, settings.max_order_references)
        order_text = await self._lookup_orders(tenant, references)

        # 2. Knowledge retrieval
        query = await self._llm.generate_embedding(customer_message)
        chunks = await self._chunk_store.search(tenant_id, query.embedding, settings.top_k_results)

        # 3. Similar past tickets
        similar = self._cache.find_similar(
            tenant_id, customer_message, settings.similar_tickets_limit
        )

        system_prompt = ReplyPromptBuilder.build_system_prompt(
            tone=tone,
            chunks=chunks,
            order_text=order_text,
            similar_tickets=similar,
            custom_instructions=custom_instructions or tenant.custom_instructions,
            one_time_instructions=one_time_instructions
        )

        # 4. Generation
        try:
            completion = await self._llm.chat_completion(
                messages=ReplyPromptBuilder.build_messages(system_prompt, customer_message),
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                operation="reply"
            )
        except Exception as e:
            raise GenerationException(getattr(e, "message", None) or str(e))

        if not completion.content.strip():
            raise GenerationException("model returned an empty reply")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        logger.info(
            "Reply generated",
            extra={
                "tenant_id": tenant_id,
                "tone": tone,
                "chunks_used": len(chunks),
                "orders_referenced": len(references),
                "similar_tickets": len(similar),
                "latency_ms": latency_ms
            }
        )

        return GeneratedReply(
            reply=completion.content,
            sources=[SourceSnippet.from_chunk(c) for c in chunks],
            has_knowledge_base=bool(chunks) or bool(order_text),
            order_references=references,
            similar_tickets_used=len(similar),
            model=completion.model,
            latency_ms=latency_ms
        )

    async def _lookup_orders(self, tenant, references) -> str:
        if not references or self._order_lookup is None or not tenant.has_storefront:
            return ""

        sections = []
        for number in references:
            try:
                result = await self._order_lookup.lookup_for_tenant(tenant, f"#{number}")
            except Exception as e:
                logger.warning(
                    "Order lookup failed, continuing without it",
                    extra={"tenant_id": tenant.id, "order_number": number, "error": str(e)}
                )
                continue
            if result.found:
                sections.append(result.formatted_text)

        return "\n\n".join(sections)
