"""
Knowledge Controllers (API Routes)
==================================

FastAPI routes for knowledge ingestion endpoints.

Controllers delegate to application services; errors are mapped to HTTP
responses by the application exception handler.
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from replydesk.knowledge.application import (
    IngestionService,
    IngestRequest, IngestResponse,
    LearnReplyRequest, LearnReplyResponse
)
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/knowledge", tags=["Knowledge Base"])


# ========== Example payloads for Swagger ==========

INGEST_RESPONSE_EXAMPLE = {
    "document_id": "123e4567-e89b-12d3-a456-426614174000",
    "document_name": "Shipping policy",
    "chunk_count": 3
}

LEARN_REPLY_RESPONSE_EXAMPLE = {
    "document_id": "123e4567-e89b-12d3-a456-426614174001",
    "duplicate": False,
    "message": "Reply learned and added to knowledge base"
}


# ========== Dependencies ==========

def get_ingestion_service(request: Request) -> IngestionService:
    """Get ingestion service from app state."""
    service = getattr(request.app.state, "ingestion_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ingestion service not available")
    return service


# ========== Route Handlers ==========

@router.post(
    "/ingest",
    response_model=IngestResponse,
    summary="Index a document into the tenant's knowledge base",
    description="""
    Chunk, embed and store a document.

    The document is either fully indexed or not stored at all: a failure in
    embedding or storage removes the partially written document.
    """,
    responses={
        200: {
            "description": "Document indexed",
            "content": {"application/json": {"example": INGEST_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Missing fields or document too large"},
        404: {"description": "Tenant not found"},
        500: {"description": "Embedding or storage failed"}
    }
)
async def ingest_document(
    request: Request,
    payload: IngestRequest,
    service: IngestionService = Depends(get_ingestion_service)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.info(
        "Ingesting document",
        extra={
            "correlation_id": correlation_id,
            "tenant_id": payload.tenant_id,
            "content_length": len(payload.content)
        }
    )

    result = await service.ingest(payload.tenant_id, payload.name, payload.content)

    return IngestResponse(
        document_id=result.document_id,
        document_name=result.document_name,
        chunk_count=result.chunk_count
    )


@router.post(
    "/learn-reply",
    response_model=LearnReplyResponse,
    summary="Learn a single question/answer pair",
    description="""
    Store an agent reply as knowledge unless very similar content is already
    indexed for the tenant.
    """,
    responses={
        200: {
            "description": "Reply learned or recognised as duplicate",
            "content": {"application/json": {"example": LEARN_REPLY_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Missing fields"},
        404: {"description": "Tenant not found"}
    }
)
async def learn_reply(
    payload: LearnReplyRequest,
    service: IngestionService = Depends(get_ingestion_service)
):
    result = await service.learn_reply(payload.tenant_id, payload.question, payload.answer)

    return LearnReplyResponse(
        document_id=result.document_id,
        duplicate=result.duplicate,
        message=result.message
    )


knowledge_router = router
