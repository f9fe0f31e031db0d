"""
Knowledge Application DTOs
==========================

Pydantic models for knowledge API request/response validation.
"""

from typing import Optional

from pydantic import BaseModel, Field


# ========== Request DTOs ==========

class IngestRequest(BaseModel):
    """Request model for document ingestion."""
    tenant_id: str = Field(..., description="Owning tenant")
    name: str = Field(..., description="Document name")
    content: str = Field(..., description="Document text")


class LearnReplyRequest(BaseModel):
    """Request model for learning a single agent reply."""
    tenant_id: str
    question: str = Field(..., description="Customer message (or captured thread)")
    answer: str = Field(..., description="Agent reply that resolved it")


# ========== Response DTOs ==========

class IngestResponse(BaseModel):
    """Response model for document ingestion."""
    document_id: str
    document_name: str
    chunk_count: int


class LearnReplyResponse(BaseModel):
    """Response model for learn-reply."""
    document_id: Optional[str] = None
    duplicate: bool
    message: str
