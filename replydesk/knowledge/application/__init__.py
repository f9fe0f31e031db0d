"""
Knowledge Application Layer
===========================

Application layer for the knowledge module.

Contains:
- Services: ingestion orchestration and repository interfaces
- DTOs: Data transfer objects for API serialization
"""

from replydesk.knowledge.application.dto import (
    IngestRequest,
    LearnReplyRequest,
    IngestResponse,
    LearnReplyResponse
)
from replydesk.knowledge.application.services import (
    IngestionService,
    ITenantRepository,
    IDocumentRepository
)

__all__ = [
    # DTOs
    "IngestRequest",
    "LearnReplyRequest",
    "IngestResponse",
    "LearnReplyResponse",
    # Services
    "IngestionService",
    # Repository Interfaces
    "ITenantRepository",
    "IDocumentRepository",
]
