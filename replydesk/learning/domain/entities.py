"""
Learning Domain Entities
========================

Domain entities for the ticket-learning module.

Helpdesk tickets and conversations are validated into pydantic records at
the boundary; the learning record and harvest results are plain dataclasses.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

STUB_MIN_DESCRIPTION_CHARS = 50
RESOLVED_STUB = "[Ticket was resolved]"


def strip_html(html: Optional[str]) -> str:
    """Drop tags and collapse whitespace."""
    if not html:
        return ""
    return _WHITESPACE.sub(" ", _TAG.sub(" ", html)).strip()


# ========== Helpdesk records ==========

class HelpdeskTicket(BaseModel):
    """Ticket as returned by the helpdesk list/search endpoints."""
    model_config = ConfigDict(extra="ignore")

    id: int
    subject: Optional[str] = ""
    status: Optional[int] = None
    description: Optional[str] = None
    description_text: Optional[str] = None
    tags: Optional[List[str]] = None

    @property
    def customer_text(self) -> str:
        if self.description_text and self.description_text.strip():
            return self.description_text.strip()
        return strip_html(self.description)


class Conversation(BaseModel):
    """One message on a ticket thread."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    body: Optional[str] = None
    body_text: Optional[str] = None
    incoming: bool = False
    private: bool = False

    @property
    def text(self) -> str:
        if self.body_text and self.body_text.strip():
            return self.body_text.strip()
        return strip_html(self.body)

    @property
    def is_agent_reply(self) -> bool:
        return not self.incoming and bool(self.text)


# ========== Learning ==========

@dataclass
class LearningRecord:
    """Q/A extracted from one resolved ticket; cached per tenant."""
    ticket_id: int
    subject: str
    customer_message: str
    agent_replies: List[str]
    tags: List[str] = field(default_factory=list)


def build_learning_block(
    ticket: HelpdeskTicket,
    conversations: List[Conversation]
) -> Optional[str]:
    """
    Render one ticket as a knowledge block.

    Returns None when the ticket carries nothing worth learning: no agent
    reply and too short a description to stand on its own.
    """
    description = ticket.customer_text
    replies = [c.text for c in conversations if c.is_agent_reply]

    block = f"TICKET: {ticket.subject or ''}\n\n"
    if description:
        block += f"CUSTOMER QUERY:\n{description}\n\n"

    if replies:
        block += "SUPPORT RESPONSE:\n"
        for reply in replies:
            block += f"{reply}\n\n"
        return block

    if len(description) > STUB_MIN_DESCRIPTION_CHARS:
        return block + f"{RESOLVED_STUB}\n\n"

    return None


def build_learning_record(
    ticket: HelpdeskTicket,
    conversations: List[Conversation]
) -> Optional[LearningRecord]:
    replies = [c.text for c in conversations if c.is_agent_reply]
    if not replies:
        return None
    return LearningRecord(
        ticket_id=ticket.id,
        subject=ticket.subject or "",
        customer_message=ticket.customer_text,
        agent_replies=replies,
        tags=list(ticket.tags or [])
    )


def combine_learning_blocks(blocks: List[str]) -> str:
    return f"# Learned from {len(blocks)} Support Conversations\n\n" + "\n---\n\n".join(blocks)


def top_topics(records: List[LearningRecord], limit: int = 10) -> List[dict]:
    """Most frequent ticket tags."""
    counts = Counter(tag for record in records for tag in record.tags)
    return [{"topic": tag, "count": count} for tag, count in counts.most_common(limit)]


# ========== Harvest results ==========

@dataclass
class HarvestProgress:
    """Progress event emitted while harvesting."""
    phase: str  # "discovery" or "processing"
    processed: int
    total: int


ProgressCallback = Callable[[HarvestProgress], None]


@dataclass
class HarvestResult:
    """Outcome of one harvest."""
    tickets_scanned: int
    conversations_learned: int
    chunks_created: int
    document_id: Optional[str] = None
    strategies_used: List[str] = field(default_factory=list)
    top_topics: List[dict] = field(default_factory=list)
    message: str = ""
