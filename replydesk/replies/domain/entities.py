"""
Replies Domain Entities
=======================

Domain entities for the reply-generation module.

Contains the generated reply, order-reference extraction and the prompt
builder that assembles retrieved context for the generation model.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from replydesk.config import ReplyTone
from replydesk.infrastructure.vectorstore import ScoredChunk
from replydesk.learning.domain import LearningRecord

SNIPPET_CHARS = 150

# "#1234", "order 1234", "order #1234", "order number: 1234", "order no. 1234"
_ORDER_REFERENCE = re.compile(
    r"(?:\border\s*(?:number|num|no\.?)?\s*[:#]?\s*#?|#)\s*(\d{3,})\b",
    re.IGNORECASE
)


def extract_order_references(message: str, limit: int = 3) -> List[str]:
    """Order numbers mentioned in a message, first mention first, deduplicated."""
    references: List[str] = []
    for match in _ORDER_REFERENCE.finditer(message or ""):
        number = match.group(1)
        if number not in references:
            references.append(number)
        if len(references) >= limit:
            break
    return references


@dataclass
class SourceSnippet:
    """Retrieved chunk shown alongside a drafted reply."""
    snippet: str
    similarity: int  # percent

    @classmethod
    def from_chunk(cls, chunk: ScoredChunk) -> "SourceSnippet":
        content = chunk.content
        snippet = content[:SNIPPET_CHARS] + ("..." if len(content) > SNIPPET_CHARS else "")
        return cls(snippet=snippet, similarity=round(chunk.similarity * 100))


@dataclass
class GeneratedReply:
    """
    Result of reply generation.

    has_knowledge_base is true when documentation or live order data was
    available to ground the reply.
    """
    reply: str
    sources: List[SourceSnippet] = field(default_factory=list)
    has_knowledge_base: bool = False
    order_references: List[str] = field(default_factory=list)
    similar_tickets_used: int = 0
    model: Optional[str] = None
    latency_ms: int = 0


class ReplyPromptBuilder:
    """
    Builds the system prompt for reply generation.

    Following DRY principle - all prompt logic in one place.
    """

    TONE_INSTRUCTIONS = {
        ReplyTone.PROFESSIONAL: "Be professional and courteous. Use formal language.",
        ReplyTone.FRIENDLY: "Be warm and friendly. Use a conversational tone while remaining helpful.",
        ReplyTone.CONCISE: "Be brief and to the point. Provide only essential information.",
    }

    NO_CONTEXT = "No relevant documentation found for this query."

    BASE_PROMPT = """You are a helpful customer support agent responding to a customer inquiry.

INSTRUCTIONS:
- Use ONLY the knowledge base and order information below to answer the customer's question
- If the answer is not available, politely say you'll check with the team and get back to them
- {tone}
- Keep responses concise but complete
- Never make up information, order details or policies that are not given below
- Do not mention that you're using a knowledge base or AI
- Write as if you are a real support agent replying to the customer
- DO NOT include any signature, sign-off, name, or closing like "Best regards, [Name]" - the user will add their own signature
- If the customer only sends a short acknowledgement (e.g. "thanks", "ok"), reply briefly without repeating earlier information
- End your response with the last relevant sentence of your answer"""

    @classmethod
    def tone_instruction(cls, tone: str) -> str:
        return cls.TONE_INSTRUCTIONS.get(tone, cls.TONE_INSTRUCTIONS[ReplyTone.PROFESSIONAL])

    @classmethod
    def build_system_prompt(
        cls,
        tone: str,
        chunks: List[ScoredChunk],
        order_text: str = "",
        similar_tickets: Optional[List[LearningRecord]] = None,
        custom_instructions: Optional[str] = None,
        one_time_instructions: Optional[str] = None
    ) -> str:
        """
        Assemble the system prompt.

        Sections appear in priority order: one-time instructions, standing
        custom instructions, live order data, similar past tickets, then
        knowledge chunks from most to least similar.
        """
        parts = [cls.BASE_PROMPT.format(tone=cls.tone_instruction(tone))]

        if one_time_instructions and one_time_instructions.strip():
            parts.append(
                "IMPORTANT - INSTRUCTIONS FOR THIS REPLY ONLY (highest priority, follow these first):\n"
                f"{one_time_instructions.strip()}"
            )

        if custom_instructions and custom_instructions.strip():
            parts.append(
                "ADDITIONAL INSTRUCTIONS FROM USER (apply only if relevant to this message):\n"
                f"{custom_instructions.strip()}"
            )

        if order_text:
            parts.append(
                "LIVE ORDER INFORMATION (current data from the store, use it for order questions):\n"
                f"{order_text}"
            )

        if similar_tickets:
            parts.append("SIMILAR PAST TICKETS:\n" + cls._format_examples(similar_tickets))

        ranked = sorted(chunks, key=lambda c: c.similarity, reverse=True)
        context = "\n\n".join(c.content for c in ranked)
        parts.append(f"KNOWLEDGE BASE:\n{context if context else cls.NO_CONTEXT}")

        if not ranked and not order_text:
            parts.append(
                "Since no relevant documentation was found, acknowledge the question "
                "and offer to escalate to a specialist."
            )

        return "\n\n".join(parts)

    @staticmethod
    def _format_examples(records: List[LearningRecord]) -> str:
        examples = []
        for i, record in enumerate(records, 1):
            reply = record.agent_replies[0] if record.agent_replies else ""
            examples.append(
                f"Example {i}:\n"
                f"Customer: {record.customer_message[:200]}...\n"
                f"Agent Reply: {reply[:300]}..."
            )
        return "\n\n".join(examples)

    @classmethod
    def build_messages(cls, system_prompt: str, customer_message: str) -> List[dict]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": customer_message},
        ]
