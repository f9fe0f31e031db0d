"""
Learning Application DTOs
=========================

Pydantic models for the harvest API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class HarvestRequest(BaseModel):
    """Request model for a ticket harvest."""
    tenant_id: str
    helpdesk_domain: Optional[str] = Field(None, description="Overrides the tenant's stored domain")
    helpdesk_api_key: Optional[str] = Field(None, description="Overrides the tenant's stored key")
    target_count: int = Field(default=100, description="Tickets to learn from (clamped to 10-5000)")


class TopicCount(BaseModel):
    topic: str
    count: int


class HarvestResponse(BaseModel):
    """Response model for a ticket harvest."""
    tickets_scanned: int
    conversations_learned: int
    chunks_created: int
    document_id: Optional[str] = None
    strategies_used: List[str] = []
    top_topics: List[TopicCount] = []
    message: str
