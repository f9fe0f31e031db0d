"""
Knowledge Domain Entities
=========================

Domain entities for the knowledge module.

Contains pure Python business objects for tenants, ingested documents
and the results of the write path.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class Tenant:
    """
    Business account; the isolation boundary for every document, chunk
    and generated reply.
    """
    id: str
    name: str
    helpdesk_domain: Optional[str] = None
    helpdesk_api_key: Optional[str] = None
    storefront_domain: Optional[str] = None
    storefront_access_token: Optional[str] = None
    website_url: Optional[str] = None
    custom_instructions: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_storefront(self) -> bool:
        """Order lookups need both the shop domain and its access token."""
        return bool(self.storefront_domain and self.storefront_access_token)


@dataclass
class Document:
    """Ingested source text. Replaced, never updated in place."""
    id: str
    tenant_id: str
    name: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class IngestionResult:
    """Outcome of indexing one document."""
    document_id: str
    document_name: str
    chunk_count: int
    superseded_documents: int = 0


@dataclass
class LearnReplyResult:
    """Outcome of learning a single agent reply."""
    duplicate: bool
    document_id: Optional[str] = None
    similarity: Optional[float] = None

    @property
    def message(self) -> str:
        if self.duplicate:
            return "Similar content already exists in knowledge base"
        return "Reply learned and added to knowledge base"
