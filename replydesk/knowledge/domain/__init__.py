"""
Knowledge Domain Layer
======================

Domain layer for the knowledge module.

Contains:
- Entities: Tenant, Document, IngestionResult, LearnReplyResult
- Chunking: boundary-aware text splitter

This layer is framework-agnostic and contains pure business logic.
"""

from replydesk.knowledge.domain.entities import (
    Tenant,
    Document,
    IngestionResult,
    LearnReplyResult
)
from replydesk.knowledge.domain.chunking import TextChunker, split_text, normalize_text

__all__ = [
    "Tenant",
    "Document",
    "IngestionResult",
    "LearnReplyResult",
    "TextChunker",
    "split_text",
    "normalize_text",
]
