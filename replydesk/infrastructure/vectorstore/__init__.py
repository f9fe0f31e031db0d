"""
Vector Store Infrastructure
============================

Tenant-scoped chunk storage and cosine-similarity search.

Two implementations share the IChunkStore interface:

- SQLAlchemyChunkStore keeps chunks in the relational database with the
  embedding stored as JSON and ranks with numpy. It is the default.
- MilvusChunkStore keeps them in a Milvus / Zilliz Cloud collection.

Every read is filtered by tenant id; there is no unscoped search.
"""

from typing import List, Optional
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from uuid import UUID, uuid4

import numpy as np
from pymilvus import MilvusClient
from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from replydesk.config import settings
from replydesk.core import VectorStoreException, ValidationException
from replydesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ScoredChunk:
    """Result from similarity search."""
    chunk_id: str
    document_id: str
    content: str
    similarity: float  # cosine, clamped to [0, 1]
    metadata: dict = field(default_factory=dict)


class IChunkStore(ABC):
    """
    Interface for chunk store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def upsert(
        self,
        tenant_id: str,
        document_id: str,
        chunks: List[str],
        embeddings: List[List[float]],
        metadata: Optional[dict] = None
    ) -> int:
        """Replace the chunks of a document; returns the number stored."""

    @abstractmethod
    async def search(
        self,
        tenant_id: str,
        query_embedding: List[float],
        top_k: int = 5
    ) -> List[ScoredChunk]:
        """Return the tenant's most similar chunks, best first."""

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete all chunks of a document."""

    @abstractmethod
    async def count(self, tenant_id: Optional[str] = None) -> int:
        """Count chunks, optionally for one tenant."""


def _check_lengths(chunks: List[str], embeddings: List[List[float]]) -> None:
    if len(chunks) != len(embeddings):
        raise ValidationException(
            "Chunk and embedding counts differ",
            {"chunks": len(chunks), "embeddings": len(embeddings)}
        )


def _parse_uuid(value: str, field_name: str) -> UUID:
    try:
        return value if isinstance(value, UUID) else UUID(str(value))
    except ValueError:
        raise ValidationException(f"Invalid {field_name}: {value}")


def rank_by_cosine(
    query_embedding: List[float],
    embeddings: List[List[float]],
    top_k: int
) -> List[tuple]:
    """
    Rank embeddings against a query.

    Returns (row_index, similarity) pairs, best first. Zero vectors score 0
    and negative similarities are clamped to 0.
    """
    if not embeddings or top_k <= 0:
        return []

    matrix = np.asarray(embeddings, dtype=np.float64)
    query = np.asarray(query_embedding, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise VectorStoreException(
            "Embedding dimension mismatch",
            {"query": int(query.shape[0]), "stored": list(matrix.shape)}
        )

    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    scores = np.clip(scores, 0.0, 1.0)

    order = np.argsort(-scores, kind="stable")[:top_k]
    return [(int(i), float(scores[i])) for i in order]


class SQLAlchemyChunkStore(IChunkStore):
    """
    Relational implementation of the chunk store.

    Each operation runs in its own session so a failed ingest can still be
    compensated by a later delete.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(
        self,
        tenant_id: str,
        document_id: str,
        chunks: List[str],
        embeddings: List[List[float]],
        metadata: Optional[dict] = None
    ) -> int:
        """
        Replace a document's chunks.

        Raises:
            ValidationException: If chunk and embedding counts differ
            VectorStoreException: If the write fails
        """
        from replydesk.knowledge.infrastructure.models import ChunkModel

        _check_lengths(chunks, embeddings)
        tenant_uuid = _parse_uuid(tenant_id, "tenant id")
        document_uuid = _parse_uuid(document_id, "document id")

        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(ChunkModel).where(ChunkModel.document_id == document_uuid)
                )
                session.add_all([
                    ChunkModel(
                        id=uuid4(),
                        document_id=document_uuid,
                        tenant_id=tenant_uuid,
                        chunk_index=i,
                        content=text,
                        embedding=list(map(float, vector)),
                        chunk_metadata=metadata
                    )
                    for i, (text, vector) in enumerate(zip(chunks, embeddings))
                ])
                await session.commit()
        except SQLAlchemyError as e:
            raise VectorStoreException(f"Failed to store chunks: {str(e)}")

        return len(chunks)

    async def search(
        self,
        tenant_id: str,
        query_embedding: List[float],
        top_k: int = 5
    ) -> List[ScoredChunk]:
        """
        Search the tenant's chunks by cosine similarity.

        Raises:
            VectorStoreException: If the query fails
        """
        from replydesk.knowledge.infrastructure.models import ChunkModel, DocumentModel

        try:
            tenant_uuid = UUID(str(tenant_id))
        except ValueError:
            return []

        stmt = (
            select(
                ChunkModel.id,
                ChunkModel.document_id,
                ChunkModel.content,
                ChunkModel.embedding,
                ChunkModel.chunk_metadata
            )
            .join(DocumentModel, DocumentModel.id == ChunkModel.document_id)
            .where(ChunkModel.tenant_id == tenant_uuid)
            .where(DocumentModel.tenant_id == tenant_uuid)
            .order_by(ChunkModel.document_id, ChunkModel.chunk_index)
        )

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise VectorStoreException(f"Search failed: {str(e)}")

        ranked = rank_by_cosine(query_embedding, [row.embedding for row in rows], top_k)

        return [
            ScoredChunk(
                chunk_id=str(rows[i].id),
                document_id=str(rows[i].document_id),
                content=rows[i].content,
                similarity=score,
                metadata=rows[i].chunk_metadata or {}
            )
            for i, score in ranked
        ]

    async def delete_by_document(self, document_id: str) -> int:
        from replydesk.knowledge.infrastructure.models import ChunkModel

        document_uuid = _parse_uuid(document_id, "document id")

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(ChunkModel).where(ChunkModel.document_id == document_uuid)
                )
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise VectorStoreException(f"Failed to delete chunks: {str(e)}")

    async def count(self, tenant_id: Optional[str] = None) -> int:
        from replydesk.knowledge.infrastructure.models import ChunkModel

        stmt = select(func.count()).select_from(ChunkModel)
        if tenant_id is not None:
            stmt = stmt.where(ChunkModel.tenant_id == _parse_uuid(tenant_id, "tenant id"))

        try:
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise VectorStoreException(f"Count failed: {str(e)}")


class MilvusChunkStore(IChunkStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of the chunk store.

    The collection uses the quick-setup schema (string primary key, vector
    field, dynamic fields for tenant_id, document_id, chunk_index, content)
    with the COSINE metric.
    """

    def __init__(
        self,
        collection_name: Optional[str] = None,
        uri: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[MilvusClient] = None
    ):
        self._collection_name = collection_name or settings.milvus_collection_name
        self._dimension = settings.embedding_dimension
        self._uri = uri or settings.milvus_uri
        self._token = token or settings.milvus_token
        self._client = client
        self._initialized = False

    async def initialize(self) -> None:
        """Connect and create the collection if it does not exist."""
        if self._initialized:
            return

        try:
            if self._client is None:
                if not self._uri:
                    raise VectorStoreException("MILVUS_URI not configured")
                self._client = MilvusClient(uri=self._uri, token=self._token)

            if not self._client.has_collection(self._collection_name):
                self._client.create_collection(
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    primary_field_name="id",
                    id_type="string",
                    max_length=64,
                    metric_type="COSINE",
                    auto_id=False
                )

            self._initialized = True

        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {str(e)}")

    async def upsert(
        self,
        tenant_id: str,
        document_id: str,
        chunks: List[str],
        embeddings: List[List[float]],
        metadata: Optional[dict] = None
    ) -> int:
        _check_lengths(chunks, embeddings)
        await self.initialize()

        data = [
            {
                "id": str(uuid4()),
                "vector": list(map(float, vector)),
                "tenant_id": str(tenant_id),
                "document_id": str(document_id),
                "chunk_index": i,
                "content": text,
                "metadata": metadata or {}
            }
            for i, (text, vector) in enumerate(zip(chunks, embeddings))
        ]

        try:
            self._client.delete(
                collection_name=self._collection_name,
                filter=f'document_id == "{document_id}"'
            )
            if data:
                self._client.insert(collection_name=self._collection_name, data=data)
        except Exception as e:
            raise VectorStoreException(f"Failed to add chunks: {str(e)}")

        return len(data)

    async def search(
        self,
        tenant_id: str,
        query_embedding: List[float],
        top_k: int = 5
    ) -> List[ScoredChunk]:
        """
        Search the tenant's chunks.

        Raises:
            VectorStoreException: If search fails
        """
        await self.initialize()

        try:
            results = self._client.search(
                collection_name=self._collection_name,
                data=[query_embedding],
                limit=top_k,
                filter=f'tenant_id == "{tenant_id}"',
                output_fields=["document_id", "content", "metadata"],
                search_params={"metric_type": "COSINE"}
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}")

        scored = []
        if results and len(results) > 0:
            for hit in results[0]:
                entity = hit.get("entity", {})
                scored.append(ScoredChunk(
                    chunk_id=str(hit.get("id")),
                    document_id=entity.get("document_id", ""),
                    content=entity.get("content", ""),
                    similarity=min(max(float(hit["distance"]), 0.0), 1.0),
                    metadata=entity.get("metadata") or {}
                ))

        scored.sort(key=lambda c: c.similarity, reverse=True)
        return scored

    async def delete_by_document(self, document_id: str) -> int:
        await self.initialize()

        try:
            result = self._client.delete(
                collection_name=self._collection_name,
                filter=f'document_id == "{document_id}"'
            )
        except Exception as e:
            raise VectorStoreException(f"Failed to delete chunks: {str(e)}")

        if isinstance(result, dict):
            return int(result.get("delete_count", 0))
        return len(result or [])

    async def count(self, tenant_id: Optional[str] = None) -> int:
        await self.initialize()

        try:
            res = self._client.query(
                collection_name=self._collection_name,
                filter=f'tenant_id == "{tenant_id}"' if tenant_id else "",
                output_fields=["count(*)"]
            )
        except Exception as e:
            raise VectorStoreException(f"Count failed: {str(e)}")

        return int(res[0]["count(*)"]) if res else 0


def create_chunk_store(session_factory: async_sessionmaker[AsyncSession]) -> IChunkStore:
    """Build the chunk store selected by ``settings.vector_backend``."""
    if settings.vector_backend == "milvus":
        logger.info("Using Milvus chunk store", extra={"collection": settings.milvus_collection_name})
        return MilvusChunkStore()
    return SQLAlchemyChunkStore(session_factory)
