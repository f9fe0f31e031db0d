"""
Learning Controllers (API Routes)
=================================

FastAPI routes for ticket harvesting.
"""

import time

from fastapi import APIRouter, Depends, HTTPException, Request

from replydesk.learning.application import (
    TicketHarvester,
    HarvestRequest,
    HarvestResponse,
    TopicCount
)
from replydesk.learning.domain import HarvestProgress
from replydesk.shared.infrastructure.logging import get_logger, get_context_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/learning", tags=["Ticket Learning"])

HARVEST_RESPONSE_EXAMPLE = {
    "tickets_scanned": 120,
    "conversations_learned": 97,
    "chunks_created": 61,
    "document_id": "123e4567-e89b-12d3-a456-426614174000",
    "strategies_used": ["filter", "search"],
    "top_topics": [{"topic": "shipping", "count": 31}],
    "message": "Learned from 97 support conversations"
}


def get_ticket_harvester(request: Request) -> TicketHarvester:
    """Get ticket harvester from app state."""
    harvester = getattr(request.app.state, "ticket_harvester", None)
    if harvester is None:
        raise HTTPException(status_code=503, detail="Ticket harvester not available")
    return harvester


@router.post(
    "/harvest",
    response_model=HarvestResponse,
    summary="Learn from resolved helpdesk tickets",
    description="""
    Discover resolved and closed tickets, extract their question/answer
    threads and replace the tenant's learned document.

    Finding fewer tickets than `target_count` is not an error; the response
    reports the counts actually reached.
    """,
    responses={
        200: {
            "description": "Harvest finished",
            "content": {"application/json": {"example": HARVEST_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Missing or rejected helpdesk credentials"},
        404: {"description": "Tenant not found"},
        500: {"description": "Indexing the learned document failed"}
    }
)
async def harvest_tickets(
    request: Request,
    payload: HarvestRequest,
    harvester: TicketHarvester = Depends(get_ticket_harvester)
):
    start_time = time.perf_counter()
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    progress_logger = get_context_logger(__name__, correlation_id)

    def log_progress(progress: HarvestProgress) -> None:
        progress_logger.debug(
            "Harvest progress",
            extra={
                "phase": progress.phase,
                "processed": progress.processed,
                "total": progress.total
            }
        )

    result = await harvester.harvest(
        payload.tenant_id,
        payload.target_count,
        helpdesk_domain=payload.helpdesk_domain,
        helpdesk_api_key=payload.helpdesk_api_key,
        on_progress=log_progress
    )

    logger.info(
        "Harvest request completed",
        extra={
            "correlation_id": correlation_id,
            "tenant_id": payload.tenant_id,
            "duration_ms": int((time.perf_counter() - start_time) * 1000)
        }
    )

    return HarvestResponse(
        tickets_scanned=result.tickets_scanned,
        conversations_learned=result.conversations_learned,
        chunks_created=result.chunks_created,
        document_id=result.document_id,
        strategies_used=result.strategies_used,
        top_topics=[TopicCount(**t) for t in result.top_topics],
        message=result.message
    )


learning_router = router
