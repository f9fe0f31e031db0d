"""Tests for the directory ingestion script."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "ingest_directory.py"


@pytest.fixture(scope="module")
def script():
    spec = importlib.util.spec_from_file_location("ingest_directory", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def test_ingests_text_and_markdown_files(script, ingestion_service, document_repository, tenant, tmp_path):
    (tmp_path / "returns.md").write_text("Returns are accepted within 30 days.", encoding="utf-8")
    (tmp_path / "shipping.txt").write_text("Orders ship within two days.", encoding="utf-8")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG")

    indexed = await script.ingest_files(ingestion_service, tenant.id, tmp_path)

    assert indexed == 2
    names = {d.name for d in await document_repository.list_by_name_prefix(tenant.id, "")}
    assert names == {"returns", "shipping"}


async def test_undecodable_file_is_skipped(script, ingestion_service, tenant, tmp_path):
    (tmp_path / "broken.txt").write_bytes(b"caf\xe9 \xff\xfe menu")
    (tmp_path / "faq.md").write_text("We open at nine every weekday.", encoding="utf-8")

    indexed = await script.ingest_files(ingestion_service, tenant.id, tmp_path)

    assert indexed == 1


async def test_blank_file_is_reported_and_skipped(script, ingestion_service, tenant, tmp_path):
    (tmp_path / "empty.txt").write_text("   ", encoding="utf-8")

    assert await script.ingest_files(ingestion_service, tenant.id, tmp_path) == 0
