"""
Replies Domain Layer
====================

Domain layer for the reply-generation module.

Contains:
- Entities: GeneratedReply, SourceSnippet
- Value Objects: ReplyPromptBuilder, order-reference extraction
"""

from replydesk.replies.domain.entities import (
    GeneratedReply,
    SourceSnippet,
    ReplyPromptBuilder,
    extract_order_references,
)

__all__ = [
    "GeneratedReply",
    "SourceSnippet",
    "ReplyPromptBuilder",
    "extract_order_references",
]
