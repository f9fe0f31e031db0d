"""
Replies Application DTOs
========================

Pydantic models for reply generation and order lookup.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from replydesk.replies.infrastructure import Order

ReplyToneStr = Literal["professional", "friendly", "concise"]


# ========== Request DTOs ==========

class GenerateReplyRequest(BaseModel):
    """Request model for reply generation."""
    tenant_id: str
    customer_message: str = Field(..., description="Inbound customer message")
    tone: ReplyToneStr = "professional"
    custom_instructions: Optional[str] = Field(
        None, description="Overrides the tenant's standing instructions"
    )
    one_time_instructions: Optional[str] = Field(
        None, description="Applies to this reply only"
    )


class OrderLookupRequest(BaseModel):
    """Request model for order lookup."""
    tenant_id: str
    search_query: str = Field(..., description="Order number, email or phone")


# ========== Response DTOs ==========

class SourceInfo(BaseModel):
    snippet: str
    similarity: int = Field(..., ge=0, le=100)


class GenerateReplyResponse(BaseModel):
    """Response model for reply generation."""
    reply: str
    sources: List[SourceInfo]
    has_knowledge_base: bool


class OrderLookupResponse(BaseModel):
    """Response model for order lookup."""
    found: bool
    orders: List[Order]
    formatted_text: str
