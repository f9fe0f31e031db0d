"""
Knowledge Infrastructure Models
===============================

SQLAlchemy ORM models for tenants, documents and their chunks.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Text, Uuid, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from replydesk.infrastructure.database import Base


class TenantModel(Base):
    """
    Database model for Tenant entity.

    Holds the business's integration credentials and reply preferences.
    """
    __tablename__ = "tenants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Helpdesk (Freshdesk)
    helpdesk_domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    helpdesk_api_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Storefront (Shopify)
    storefront_domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    storefront_access_token: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    website_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    custom_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )


class DocumentModel(Base):
    """
    Database model for an ingested document.

    Chunks are removed with their document (ON DELETE CASCADE).
    """
    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    chunks: Mapped[List["ChunkModel"]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True
    )


class ChunkModel(Base):
    """
    Database model for one embedded chunk.

    tenant_id duplicates the parent document's tenant so searches can
    filter without a join.
    """
    __tablename__ = "chunks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    tenant_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    embedding: Mapped[List[float]] = mapped_column(JSON, nullable=False)
    # "metadata" is reserved on declarative classes
    chunk_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    document: Mapped[DocumentModel] = relationship(back_populates="chunks")
