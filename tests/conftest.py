"""Pytest configuration and fixtures for ReplyDesk tests."""

from typing import AsyncGenerator, Callable
from uuid import uuid4

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine

from replydesk.infrastructure.database import build_session_factory, create_tables
from replydesk.infrastructure.llm import MockLLMClient
from replydesk.infrastructure.vectorstore import SQLAlchemyChunkStore
from replydesk.knowledge.application import IngestionService
from replydesk.knowledge.domain import Tenant, TextChunker
from replydesk.knowledge.infrastructure import (
    SQLAlchemyTenantRepository,
    SQLAlchemyDocumentRepository,
)
from replydesk.learning.application import LearningCache
from replydesk.learning.infrastructure import FreshdeskClient
from replydesk.replies.infrastructure import ShopifyClient

EMBEDDING_DIMENSION = 64


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return build_session_factory(async_engine)


@pytest.fixture
def tenant_repository(session_factory) -> SQLAlchemyTenantRepository:
    return SQLAlchemyTenantRepository(session_factory)


@pytest.fixture
def document_repository(session_factory) -> SQLAlchemyDocumentRepository:
    return SQLAlchemyDocumentRepository(session_factory)


@pytest.fixture
def chunk_store(session_factory) -> SQLAlchemyChunkStore:
    return SQLAlchemyChunkStore(session_factory)


# -------------------------------------------------------------------------
# Tenant Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def tenant(tenant_repository) -> Tenant:
    """Tenant with helpdesk and storefront credentials."""
    return await tenant_repository.create(Tenant(
        id=str(uuid4()),
        name="Acme Outdoor",
        helpdesk_domain="acme",
        helpdesk_api_key="fd-key",
        storefront_domain="acme.myshopify.com",
        storefront_access_token="shpat_test",
    ))


@pytest.fixture
async def other_tenant(tenant_repository) -> Tenant:
    """Second tenant without integrations, for isolation tests."""
    return await tenant_repository.create(Tenant(id=str(uuid4()), name="Globex"))


# -------------------------------------------------------------------------
# Service Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def llm_client() -> MockLLMClient:
    return MockLLMClient(dimension=EMBEDDING_DIMENSION, batch_size=4)


@pytest.fixture
def learning_cache() -> LearningCache:
    return LearningCache(ttl_seconds=3600)


@pytest.fixture
def ingestion_service(
    tenant_repository, document_repository, chunk_store, llm_client
) -> IngestionService:
    return IngestionService(
        tenant_repository,
        document_repository,
        chunk_store,
        llm_client,
        chunker=TextChunker(2000, 200),
    )


# -------------------------------------------------------------------------
# HTTP mocking helpers
# -------------------------------------------------------------------------


def freshdesk_factory(handler: Callable[[httpx.Request], httpx.Response]):
    """FreshdeskClient factory backed by an httpx MockTransport, no delays."""

    async def no_sleep(_seconds: float) -> None:
        return None

    def factory(domain: str, api_key: str) -> FreshdeskClient:
        return FreshdeskClient(
            domain,
            api_key,
            transport=httpx.MockTransport(handler),
            request_delay=0,
            sleep=no_sleep,
        )

    return factory


def shopify_factory(handler: Callable[[httpx.Request], httpx.Response]):
    """ShopifyClient factory backed by an httpx MockTransport."""

    def factory(domain: str, access_token: str) -> ShopifyClient:
        return ShopifyClient(domain, access_token, transport=httpx.MockTransport(handler))

    return factory


def make_ticket(ticket_id: int, status: int = 4, **fields) -> dict:
    ticket = {
        "id": ticket_id,
        "subject": f"Question {ticket_id}",
        "status": status,
        "description_text": f"Customer asks about shipping for ticket {ticket_id}.",
        "tags": [],
    }
    ticket.update(fields)
    return ticket


def agent_reply(text: str) -> dict:
    return {"id": 1, "body_text": text, "incoming": False, "private": False}


def customer_message(text: str) -> dict:
    return {"id": 2, "body_text": text, "incoming": True, "private": False}


# -------------------------------------------------------------------------
# Application Fixtures
# -------------------------------------------------------------------------


def _unreachable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "not mocked"})


@pytest.fixture
def helpdesk_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Override in a test module to serve helpdesk calls to the app."""
    return _unreachable


@pytest.fixture
def storefront_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Override in a test module to serve storefront calls to the app."""
    return _unreachable


@pytest.fixture
def app(session_factory, llm_client, chunk_store, learning_cache,
        helpdesk_handler, storefront_handler) -> FastAPI:
    """FastAPI app with services wired to the in-memory database."""
    from replydesk.main import app as main_app, build_services

    build_services(
        main_app,
        session_factory,
        llm_client,
        chunk_store=chunk_store,
        learning_cache=learning_cache,
        freshdesk_client_factory=freshdesk_factory(helpdesk_handler),
        shopify_client_factory=shopify_factory(storefront_handler),
    )
    yield main_app
    main_app.state._state.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client; the lifespan is not run, services come from build_services."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -------------------------------------------------------------------------
# Storefront payloads
# -------------------------------------------------------------------------

ORDER_1001 = {
    "id": 501,
    "name": "#1001",
    "email": "jane@example.com",
    "created_at": "2024-03-02T10:00:00-05:00",
    "financial_status": "paid",
    "fulfillment_status": "fulfilled",
    "total_price": "59.00",
    "currency": "USD",
    "line_items": [{"title": "Rain Jacket", "quantity": 1, "price": "59.00"}],
    "shipping_address": {"city": "Portland", "province": "Oregon", "country": "United States"},
}
