"""
Knowledge Infrastructure Layer
==============================

ORM models and SQLAlchemy repositories for tenants and documents.
"""

from replydesk.knowledge.infrastructure.models import TenantModel, DocumentModel, ChunkModel
from replydesk.knowledge.infrastructure.repositories import (
    SQLAlchemyTenantRepository,
    SQLAlchemyDocumentRepository
)

__all__ = [
    "TenantModel",
    "DocumentModel",
    "ChunkModel",
    "SQLAlchemyTenantRepository",
    "SQLAlchemyDocumentRepository",
]
