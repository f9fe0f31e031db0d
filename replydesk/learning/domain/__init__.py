"""
Learning Domain Layer
=====================

Domain layer for the ticket-learning module.

Contains:
- Helpdesk records: HelpdeskTicket, Conversation
- Entities: LearningRecord, HarvestProgress, HarvestResult
- Block builders turning resolved tickets into knowledge text
"""

from replydesk.learning.domain.entities import (
    HelpdeskTicket,
    Conversation,
    LearningRecord,
    HarvestProgress,
    HarvestResult,
    ProgressCallback,
    RESOLVED_STUB,
    strip_html,
    build_learning_block,
    build_learning_record,
    combine_learning_blocks,
    top_topics,
)

__all__ = [
    "HelpdeskTicket",
    "Conversation",
    "LearningRecord",
    "HarvestProgress",
    "HarvestResult",
    "ProgressCallback",
    "RESOLVED_STUB",
    "strip_html",
    "build_learning_block",
    "build_learning_record",
    "combine_learning_blocks",
    "top_topics",
]
