"""
Knowledge Infrastructure Repositories
=====================================

SQLAlchemy implementations of the tenant and document repositories.

Repositories take a session factory rather than a session: each call is its
own unit of work, which lets the ingestion service delete a half-written
document after a failure in a later step.
"""

from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from replydesk.knowledge.application.services import ITenantRepository, IDocumentRepository
from replydesk.knowledge.domain import Tenant, Document
from replydesk.core import RepositoryException


def _to_uuid(value: str) -> Optional[UUID]:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError:
        return None


class SQLAlchemyTenantRepository(ITenantRepository):
    """SQLAlchemy implementation for tenants."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _to_entity(model) -> Tenant:
        return Tenant(
            id=str(model.id),
            name=model.name,
            helpdesk_domain=model.helpdesk_domain,
            helpdesk_api_key=model.helpdesk_api_key,
            storefront_domain=model.storefront_domain,
            storefront_access_token=model.storefront_access_token,
            website_url=model.website_url,
            custom_instructions=model.custom_instructions,
            created_at=model.created_at
        )

    async def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        """Get tenant by ID; malformed ids are simply not found."""
        from replydesk.knowledge.infrastructure.models import TenantModel

        tenant_uuid = _to_uuid(tenant_id)
        if tenant_uuid is None:
            return None

        try:
            async with self._session_factory() as session:
                model = await session.get(TenantModel, tenant_uuid)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load tenant: {str(e)}")

        return self._to_entity(model) if model else None

    async def create(self, tenant: Tenant) -> Tenant:
        from replydesk.knowledge.infrastructure.models import TenantModel

        model = TenantModel(
            id=_to_uuid(tenant.id) or uuid4(),
            name=tenant.name,
            helpdesk_domain=tenant.helpdesk_domain,
            helpdesk_api_key=tenant.helpdesk_api_key,
            storefront_domain=tenant.storefront_domain,
            storefront_access_token=tenant.storefront_access_token,
            website_url=tenant.website_url,
            custom_instructions=tenant.custom_instructions,
            created_at=tenant.created_at
        )

        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create tenant: {str(e)}")

        return self._to_entity(model)


class SQLAlchemyDocumentRepository(IDocumentRepository):
    """SQLAlchemy implementation for documents."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _to_entity(model) -> Document:
        return Document(
            id=str(model.id),
            tenant_id=str(model.tenant_id),
            name=model.name,
            content=model.content,
            created_at=model.created_at
        )

    async def create(self, tenant_id: str, name: str, content: str) -> Document:
        """Create new document row."""
        from replydesk.knowledge.infrastructure.models import DocumentModel

        tenant_uuid = _to_uuid(tenant_id)
        if tenant_uuid is None:
            raise RepositoryException(f"Invalid tenant ID: {tenant_id}")

        model = DocumentModel(id=uuid4(), tenant_id=tenant_uuid, name=name, content=content)

        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create document: {str(e)}")

        return self._to_entity(model)

    async def get_by_id(self, document_id: str) -> Optional[Document]:
        from replydesk.knowledge.infrastructure.models import DocumentModel

        document_uuid = _to_uuid(document_id)
        if document_uuid is None:
            return None

        async with self._session_factory() as session:
            model = await session.get(DocumentModel, document_uuid)

        return self._to_entity(model) if model else None

    async def list_by_name_prefix(self, tenant_id: str, prefix: str) -> List[Document]:
        """Documents of a tenant whose name starts with prefix, oldest first."""
        from replydesk.knowledge.infrastructure.models import DocumentModel

        tenant_uuid = _to_uuid(tenant_id)
        if tenant_uuid is None:
            return []

        stmt = (
            select(DocumentModel)
            .where(DocumentModel.tenant_id == tenant_uuid)
            .where(DocumentModel.name.startswith(prefix, autoescape=True))
            .order_by(DocumentModel.created_at)
        )

        try:
            async with self._session_factory() as session:
                models = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to list documents: {str(e)}")

        return [self._to_entity(m) for m in models]

    async def delete(self, document_id: str) -> bool:
        from replydesk.knowledge.infrastructure.models import DocumentModel

        document_uuid = _to_uuid(document_id)
        if document_uuid is None:
            return False

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(DocumentModel).where(DocumentModel.id == document_uuid)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to delete document: {str(e)}")

        return bool(result.rowcount)
