"""
Replies Controllers (API Routes)
================================

FastAPI routes for reply generation and storefront order lookup.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from replydesk.replies.application import (
    ReplyService,
    GenerateReplyRequest, GenerateReplyResponse,
    OrderLookupRequest, OrderLookupResponse,
    SourceInfo
)
from replydesk.replies.infrastructure import OrderLookupService
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
replies_router = APIRouter(prefix="/replies", tags=["Replies"])
orders_router = APIRouter(prefix="/orders", tags=["Orders"])

GENERATE_RESPONSE_EXAMPLE = {
    "reply": "Your order #1001 shipped on 3/2/2024 with tracking number 1Z999AA10123456784.",
    "sources": [
        {"snippet": "Orders ship within 2 business days of purchase...", "similarity": 82}
    ],
    "has_knowledge_base": True
}


# ========== Dependencies ==========

def get_reply_service(request: Request) -> ReplyService:
    """Get reply service from app state."""
    service = getattr(request.app.state, "reply_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Reply service not available")
    return service


def get_order_lookup(request: Request) -> OrderLookupService:
    """Get order lookup service from app state."""
    service = getattr(request.app.state, "order_lookup", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Order lookup not available")
    return service


# ========== Route Handlers ==========

@replies_router.post(
    "/generate",
    response_model=GenerateReplyResponse,
    summary="Draft a reply to a customer message",
    description="""
    Retrieve the tenant's most relevant knowledge, any referenced orders and
    similar past tickets, then draft a reply in the requested tone.

    **Tones**: `professional`, `friendly`, `concise`
    """,
    responses={
        200: {
            "description": "Reply drafted",
            "content": {"application/json": {"example": GENERATE_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Missing fields or unknown tone"},
        404: {"description": "Tenant not found"},
        500: {"description": "Generation failed"}
    }
)
async def generate_reply(
    request: Request,
    payload: GenerateReplyRequest,
    service: ReplyService = Depends(get_reply_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.info(
        "Generating reply",
        extra={
            "correlation_id": correlation_id,
            "tenant_id": payload.tenant_id,
            "tone": payload.tone,
            "message_preview": payload.customer_message[:100]
        }
    )

    result = await service.generate(
        payload.tenant_id,
        payload.customer_message,
        tone=payload.tone,
        custom_instructions=payload.custom_instructions,
        one_time_instructions=payload.one_time_instructions
    )

    return GenerateReplyResponse(
        reply=result.reply,
        sources=[SourceInfo(snippet=s.snippet, similarity=s.similarity) for s in result.sources],
        has_knowledge_base=result.has_knowledge_base
    )


@orders_router.post(
    "/lookup",
    response_model=OrderLookupResponse,
    summary="Look up storefront orders",
    description="Search the tenant's storefront by order number, email or phone.",
    responses={
        400: {"description": "Missing fields or storefront not configured"},
        404: {"description": "Tenant not found"}
    }
)
async def lookup_orders(
    payload: OrderLookupRequest,
    service: OrderLookupService = Depends(get_order_lookup)
):
    result = await service.lookup(payload.tenant_id, payload.search_query)
    return OrderLookupResponse(
        found=result.found,
        orders=result.orders,
        formatted_text=result.formatted_text
    )
