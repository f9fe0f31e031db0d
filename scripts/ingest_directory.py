#!/usr/bin/env python3
"""
Ingest a Directory
==================

Indexes every .txt and .md file of a directory into a tenant's knowledge
base, using the same ingestion pipeline as the API.

Usage:
    python scripts/ingest_directory.py <tenant_id> <directory>
"""

import asyncio
import sys
from pathlib import Path

from replydesk.config import settings
from replydesk.core import ApplicationException
from replydesk.infrastructure.database import (
    init_database, close_database, create_tables, get_session_factory
)
from replydesk.infrastructure.llm import create_llm_client
from replydesk.infrastructure.vectorstore import create_chunk_store
from replydesk.knowledge.application import IngestionService
from replydesk.knowledge.infrastructure import (
    SQLAlchemyTenantRepository, SQLAlchemyDocumentRepository
)
from replydesk.shared.infrastructure.logging import setup_logging

SUPPORTED_SUFFIXES = {".txt", ".md"}


async def ingest_files(service: IngestionService, tenant_id: str, directory: Path) -> int:
    """Ingest all supported files; returns the number of files indexed."""
    files = sorted(p for p in directory.rglob("*") if p.suffix.lower() in SUPPORTED_SUFFIXES)
    print(f"Found {len(files)} files in {directory}")

    indexed = 0
    for path in files:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"  ! {path.name}: unreadable ({e})")
            continue

        try:
            result = await service.ingest(
                tenant_id,
                path.stem,
                content,
                {"source": "file", "path": str(path.relative_to(directory))}
            )
        except ApplicationException as e:
            print(f"  ! {path.name}: {e.message}")
            continue

        indexed += 1
        print(f"  + {path.name}: {result.chunk_count} chunks ({result.document_id})")

    return indexed


async def ingest_directory(tenant_id: str, directory: Path) -> int:
    init_database()
    await create_tables()
    session_factory = get_session_factory()

    service = IngestionService(
        SQLAlchemyTenantRepository(session_factory),
        SQLAlchemyDocumentRepository(session_factory),
        create_chunk_store(session_factory),
        create_llm_client()
    )

    try:
        return await ingest_files(service, tenant_id, directory)
    finally:
        await close_database()


def main() -> int:
    if len(sys.argv) != 3:
        print(__doc__)
        return 2

    setup_logging("WARNING", settings.environment)
    tenant_id, directory = sys.argv[1], Path(sys.argv[2])
    if not directory.is_dir():
        print(f"Not a directory: {directory}")
        return 2

    indexed = asyncio.run(ingest_directory(tenant_id, directory))
    print(f"\nIndexed {indexed} documents for tenant {tenant_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
