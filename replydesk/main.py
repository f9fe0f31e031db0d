"""
ReplyDesk - Main Application
============================

Customer-support reply assistant.

Modules:
- Knowledge: Chunk, embed and store tenant documents
- Learning: Harvest resolved helpdesk tickets into knowledge
- Replies: Draft replies with retrieved knowledge and live order data

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, LLM, vector store, external APIs
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Configuration and Core
from replydesk.config import settings
from replydesk.core import ApplicationException

# Infrastructure
from replydesk.infrastructure.database import (
    init_database, close_database, create_tables, get_session_factory
)
from replydesk.infrastructure.llm import ILLMClient, create_llm_client
from replydesk.infrastructure.vectorstore import IChunkStore, create_chunk_store

# Module services
from replydesk.knowledge.application import IngestionService
from replydesk.knowledge.infrastructure import (
    SQLAlchemyTenantRepository, SQLAlchemyDocumentRepository
)
from replydesk.learning.application import LearningCache, TicketHarvester
from replydesk.replies.application import ReplyService
from replydesk.replies.infrastructure import OrderLookupService

# Module Routers
from replydesk.knowledge.interfaces import knowledge_router
from replydesk.learning.interfaces import learning_router
from replydesk.replies.interfaces import replies_router, orders_router

# Middleware and logging
from replydesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    request_validation_exception_handler,
    global_exception_handler
)
from replydesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


def build_services(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    llm_client: ILLMClient,
    chunk_store: Optional[IChunkStore] = None,
    learning_cache: Optional[LearningCache] = None,
    **overrides
) -> None:
    """
    Construct the service graph once and store it in app state.

    Keyword overrides (e.g. ``freshdesk_client_factory``) swap external
    client factories, which is how tests reach mocked HTTP transports.
    """
    chunk_store = chunk_store or create_chunk_store(session_factory)
    learning_cache = learning_cache or LearningCache()

    tenant_repository = SQLAlchemyTenantRepository(session_factory)
    document_repository = SQLAlchemyDocumentRepository(session_factory)

    ingestion_service = IngestionService(
        tenant_repository, document_repository, chunk_store, llm_client
    )

    harvester_kwargs = {}
    if "freshdesk_client_factory" in overrides:
        harvester_kwargs["client_factory"] = overrides["freshdesk_client_factory"]
    ticket_harvester = TicketHarvester(ingestion_service, learning_cache, **harvester_kwargs)

    lookup_kwargs = {}
    if "shopify_client_factory" in overrides:
        lookup_kwargs["client_factory"] = overrides["shopify_client_factory"]
    order_lookup = OrderLookupService(tenant_repository, **lookup_kwargs)

    app.state.session_factory = session_factory
    app.state.llm_client = llm_client
    app.state.chunk_store = chunk_store
    app.state.learning_cache = learning_cache
    app.state.tenant_repository = tenant_repository
    app.state.ingestion_service = ingestion_service
    app.state.ticket_harvester = ticket_harvester
    app.state.order_lookup = order_lookup
    app.state.reply_service = ReplyService(
        ingestion_service, chunk_store, llm_client, learning_cache, order_lookup
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Initialize LLM client and chunk store
    4. Build services into app state

    SHUTDOWN:
    1. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting ReplyDesk", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use Alembic in production)
    try:
        await create_tables()
    except Exception as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    logger.info("Initializing LLM client", extra={"provider": settings.llm_provider})
    try:
        llm_client = create_llm_client()
    except ApplicationException as e:
        logger.warning(f"LLM client initialization failed: {e}")
        llm_client = None

    if llm_client is not None:
        build_services(app, get_session_factory(), llm_client)
    else:
        logger.warning("Knowledge, learning and reply services not available - no LLM client")

    logger.info("ReplyDesk started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down ReplyDesk")
    await close_database()
    logger.info("ReplyDesk shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="ReplyDesk API",
    description="""
    ## Customer-Support Reply Assistant

    Retrieval-augmented reply drafting for support teams.

    ---

    ### Knowledge

    - `POST /knowledge/ingest` - Index a document for a tenant
    - `POST /knowledge/learn-reply` - Learn one question/answer pair

    ### Learning

    - `POST /learning/harvest` - Learn from resolved helpdesk tickets

    ### Replies

    - `POST /replies/generate` - Draft a reply to a customer message
    - `POST /orders/lookup` - Look up storefront orders
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(knowledge_router)
app.include_router(learning_router)
app.include_router(replies_router)
app.include_router(orders_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "llm_client": "available",
                        "chunk_store": "available (120 chunks)"
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Database connectivity
    - LLM client availability
    - Chunk store status
    """
    state = request.app.state
    checks = {
        "database": "not_initialized",
        "llm_client": "available" if getattr(state, "llm_client", None) else "not_configured",
        "chunk_store": "not_initialized"
    }

    session_factory = getattr(state, "session_factory", None)
    if session_factory is not None:
        try:
            async with session_factory() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "connected"
        except Exception as e:
            checks["database"] = f"error: {str(e)}"

    chunk_store = getattr(state, "chunk_store", None)
    if chunk_store is not None:
        try:
            checks["chunk_store"] = f"available ({await chunk_store.count()} chunks)"
        except ApplicationException as e:
            checks["chunk_store"] = f"error: {e.message}"

    healthy = checks["database"] == "connected" and checks["llm_client"] == "available"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "ReplyDesk",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health"
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "replydesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
