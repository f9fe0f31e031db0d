"""
Knowledge Application Services
==============================

Write path of the knowledge base: chunk, embed and store documents.

A document is either fully indexed or absent. When any step after the
document row is created fails, the row and its partial chunks are deleted
before the error is raised.
"""

import asyncio
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple
from abc import ABC, abstractmethod

from replydesk.config import settings
from replydesk.core import (
    ApplicationException,
    ValidationException,
    DocumentTooLargeException,
    ResourceNotFoundException,
    IngestionException,
)
from replydesk.infrastructure.llm import ILLMClient
from replydesk.infrastructure.vectorstore import IChunkStore
from replydesk.knowledge.domain import (
    Tenant, Document, IngestionResult, LearnReplyResult, TextChunker
)
from replydesk.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

# Browser captures of a full thread mark where the newest customer message starts
_LATEST_MESSAGE = re.compile(r"<<<< THIS IS THE LATEST MESSAGE[^:]*:\s*([^=]+)")

MAX_LEARNED_QUESTION_CHARS = 1000
MAX_LEARNED_ANSWER_CHARS = 1500
LEARNED_TITLE_CHARS = 80


# ========== Repository Interfaces ==========

class ITenantRepository(ABC):
    """Interface for tenant data access."""

    @abstractmethod
    async def get_by_id(self, tenant_id: str) -> Optional[Tenant]:
        """Get tenant by ID."""

    @abstractmethod
    async def create(self, tenant: Tenant) -> Tenant:
        """Create new tenant."""


class IDocumentRepository(ABC):
    """Interface for document data access."""

    @abstractmethod
    async def create(self, tenant_id: str, name: str, content: str) -> Document:
        """Create new document."""

    @abstractmethod
    async def get_by_id(self, document_id: str) -> Optional[Document]:
        """Get document by ID."""

    @abstractmethod
    async def list_by_name_prefix(self, tenant_id: str, prefix: str) -> List[Document]:
        """List a tenant's documents whose name starts with prefix."""

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete a document and, through the FK, its chunks."""


# ========== Application Services ==========

class IngestionService:
    """
    Service for indexing documents into the knowledge base.

    Coordinates the chunker, the embedding client and the chunk store.
    """

    def __init__(
        self,
        tenant_repository: ITenantRepository,
        document_repository: IDocumentRepository,
        chunk_store: IChunkStore,
        llm_client: ILLMClient,
        chunker: Optional[TextChunker] = None
    ):
        self._tenants = tenant_repository
        self._documents = document_repository
        self._chunk_store = chunk_store
        self._llm = llm_client
        self._chunker = chunker or TextChunker.from_settings()
        self._relearn_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_tenant(self, tenant_id: str) -> Tenant:
        """
        Load a tenant.

        Raises:
            ResourceNotFoundException: If the tenant does not exist
        """
        tenant = await self._tenants.get_by_id(tenant_id)
        if tenant is None:
            raise ResourceNotFoundException("Tenant", tenant_id)
        return tenant

    async def ingest(
        self,
        tenant_id: str,
        name: str,
        content: str,
        metadata: Optional[dict] = None
    ) -> IngestionResult:
        """
        Index one document.

        Args:
            tenant_id: Owning tenant
            name: Document name
            content: Document text
            metadata: Optional tag stored with every chunk

        Returns:
            IngestionResult with document id and chunk count

        Raises:
            ValidationException: Missing fields or oversized content
            ResourceNotFoundException: Unknown tenant
            IngestionException: Chunking, embedding or storage failed (rolled back)
        """
        self._validate(tenant_id, name, content)
        await self.get_tenant(tenant_id)
        return await self._index(tenant_id, name, content, metadata)

    async def replace_documents(
        self,
        tenant_id: str,
        name_prefix: str,
        name: str,
        content: str,
        metadata: Optional[dict] = None
    ) -> IngestionResult:
        """
        Ingest a document and supersede the tenant's older ones sharing a prefix.

        The new document is fully indexed before any old one is deleted, so
        readers never see an empty learned state. Runs under a per-tenant lock.
        Harvested documents are not bound by the upload size limit.
        """
        self._validate(tenant_id, name, content, check_size=False)
        await self.get_tenant(tenant_id)

        async with self._relearn_locks[str(tenant_id)]:
            result = await self._index(tenant_id, name, content, metadata)

            superseded = 0
            for document in await self._documents.list_by_name_prefix(tenant_id, name_prefix):
                if document.id == result.document_id:
                    continue
                await self._chunk_store.delete_by_document(document.id)
                if await self._documents.delete(document.id):
                    superseded += 1

            result.superseded_documents = superseded

        logger.info(
            "Documents replaced",
            extra={
                "tenant_id": tenant_id,
                "document_id": result.document_id,
                "name_prefix": name_prefix,
                "superseded": superseded
            }
        )
        return result

    async def learn_reply(self, tenant_id: str, question: str, answer: str) -> LearnReplyResult:
        """
        Add one question/answer pair unless the tenant already knows it.

        Raises:
            ValidationException: Missing fields
            ResourceNotFoundException: Unknown tenant
            IngestionException: Storage failed (rolled back)
        """
        if not tenant_id or not (question or "").strip() or not (answer or "").strip():
            raise ValidationException("tenant_id, question and answer are required")
        await self.get_tenant(tenant_id)

        question = self.extract_latest_message(question)[:MAX_LEARNED_QUESTION_CHARS]
        answer = answer.strip()[:MAX_LEARNED_ANSWER_CHARS]
        content = f"Customer Question: {question}\n\nAgent Response: {answer}"

        embedding = (await self._llm.generate_embedding(content)).embedding

        nearest = await self._chunk_store.search(tenant_id, embedding, top_k=1)
        if nearest and nearest[0].similarity > settings.duplicate_similarity_threshold:
            logger.info(
                "Learned reply already known",
                extra={"tenant_id": tenant_id, "similarity": nearest[0].similarity}
            )
            return LearnReplyResult(duplicate=True, similarity=nearest[0].similarity)

        first_line = question.split("\n")[0]
        title = first_line[:LEARNED_TITLE_CHARS]
        if len(first_line) > LEARNED_TITLE_CHARS:
            title += "..."

        # The lookup embedding is reused only when the pair fits in one chunk
        prepared = None
        if self._chunker.split(content) == [content]:
            prepared = ([content], [embedding])

        result = await self._index(
            tenant_id,
            f"Learned: {title}",
            content,
            {"source": "agent_reply"},
            prepared=prepared
        )
        return LearnReplyResult(
            duplicate=False,
            document_id=result.document_id,
            similarity=nearest[0].similarity if nearest else None
        )

    @staticmethod
    def extract_latest_message(text: str) -> str:
        """Return the newest customer message of a captured thread, else the text."""
        match = _LATEST_MESSAGE.search(text)
        if match:
            return match.group(1).strip()
        return text.strip()

    # ---------- internals ----------

    def _validate(self, tenant_id: str, name: str, content: str, check_size: bool = True) -> None:
        if not tenant_id:
            raise ValidationException("tenant_id is required")
        if not name or not name.strip():
            raise ValidationException("name is required")
        if not content or not content.strip():
            raise ValidationException("content is required")
        if check_size and len(content) > settings.max_document_chars:
            raise DocumentTooLargeException(len(content), settings.max_document_chars)

    async def _index(
        self,
        tenant_id: str,
        name: str,
        content: str,
        metadata: Optional[dict],
        prepared: Optional[Tuple[List[str], List[List[float]]]] = None
    ) -> IngestionResult:
        document = await self._documents.create(tenant_id, name.strip(), content)

        try:
            if prepared is not None:
                chunks, embeddings = prepared
            else:
                chunks = self._chunker.split(content)
                if not chunks:
                    raise ValidationException("Document has no indexable text")
                with log_latency(logger, "embed_chunks", chunk_count=len(chunks)):
                    results = await self._llm.generate_embeddings(chunks)
                embeddings = [r.embedding for r in results]

            chunk_count = await self._chunk_store.upsert(
                tenant_id, document.id, chunks, embeddings, metadata
            )
        except Exception as e:
            await self._compensate(document)
            message = e.message if isinstance(e, ApplicationException) else str(e)
            raise IngestionException(
                f"Failed to index document: {message}",
                {"document_name": document.name}
            ) from e

        logger.info(
            "Document indexed",
            extra={
                "tenant_id": tenant_id,
                "document_id": document.id,
                "chunk_count": chunk_count
            }
        )
        return IngestionResult(
            document_id=document.id,
            document_name=document.name,
            chunk_count=chunk_count
        )

    async def _compensate(self, document: Document) -> None:
        """Remove a partially indexed document."""
        try:
            await self._chunk_store.delete_by_document(document.id)
            await self._documents.delete(document.id)
        except Exception:
            # Reported, then the original failure is raised by the caller
            logger.exception(
                "Rollback of partially indexed document failed",
                extra={"document_id": document.id, "tenant_id": document.tenant_id}
            )
        else:
            logger.warning(
                "Partially indexed document rolled back",
                extra={"document_id": document.id, "tenant_id": document.tenant_id}
            )
