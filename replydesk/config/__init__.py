"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="replydesk", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/replydesk",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== LLM Providers ==========
    llm_provider: str = Field(
        default="openai",
        description="Embedding/generation provider: openai, zai or mock"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints"
    )
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    llm_model: str = Field(default="gpt-4o-mini", description="Generation model")
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model"
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding vector dimension",
        ge=8
    )
    embedding_batch_size: int = Field(
        default=20,
        description="Texts per embedding request",
        ge=1,
        le=2048
    )
    llm_temperature: float = Field(
        default=0.7,
        description="Sampling temperature for reply generation",
        ge=0.0,
        le=2.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Max tokens for a drafted reply",
        ge=1,
        le=8000
    )

    # ========== Vector Store ==========
    vector_backend: str = Field(
        default="sql",
        description="Chunk store backend: sql (relational + numpy) or milvus"
    )
    milvus_uri: str = Field(default="", description="Milvus / Zilliz Cloud URI")
    milvus_token: str = Field(default="", description="Milvus / Zilliz Cloud API key")
    milvus_collection_name: str = Field(
        default="replydesk_chunks",
        description="Milvus collection name"
    )

    # ========== RAG ==========
    chunk_size: int = Field(default=2000, description="Target chunk size in characters", ge=100)
    chunk_overlap: int = Field(default=200, description="Overlap between chunks", ge=0)
    top_k_results: int = Field(
        default=5,
        description="Number of chunks retrieved per reply",
        ge=1,
        le=20
    )
    max_document_chars: int = Field(
        default=100_000,
        description="Maximum document size accepted for ingestion",
        ge=1
    )
    duplicate_similarity_threshold: float = Field(
        default=0.95,
        description="Similarity above which a learned reply counts as already known",
        ge=0.0,
        le=1.0
    )
    max_order_references: int = Field(
        default=3,
        description="Order numbers looked up per customer message",
        ge=0
    )
    similar_tickets_limit: int = Field(
        default=3,
        description="Past tickets quoted in a reply prompt",
        ge=0
    )

    # ========== Helpdesk (Freshdesk) ==========
    helpdesk_request_delay_seconds: float = Field(
        default=1.2,
        description="Delay between helpdesk calls (Freshdesk allows 50 requests/minute)",
        ge=0.0
    )
    helpdesk_timeout_seconds: float = Field(
        default=15.0,
        description="Timeout for helpdesk API calls",
        ge=0.1
    )
    helpdesk_max_retries: int = Field(
        default=3,
        description="Retries on HTTP 429 from the helpdesk",
        ge=0
    )
    harvest_filters: List[str] = Field(
        default=["resolved", "closed"],
        description="Helpdesk list filters scanned first"
    )
    harvest_filter_max_pages: int = Field(default=50, ge=1)
    harvest_search_max_pages: int = Field(default=10, ge=1)
    harvest_scan_max_pages: int = Field(default=100, ge=1)
    harvest_min_tickets: int = Field(default=10, ge=1)
    harvest_max_tickets: int = Field(default=5000, ge=1)
    learning_cache_ttl_seconds: int = Field(
        default=3600,
        description="Lifetime of cached learning records",
        ge=1
    )

    # ========== Storefront (Shopify) ==========
    storefront_api_version: str = Field(default="2024-01", description="Shopify Admin API version")
    storefront_timeout_seconds: float = Field(default=10.0, ge=0.1)

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"openai", "zai", "mock"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v

    @field_validator("vector_backend")
    @classmethod
    def validate_vector_backend(cls, v: str) -> str:
        allowed = {"sql", "milvus"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"vector_backend must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class ReplyTone(str):
    """Reply tones accepted by the generator."""
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    CONCISE = "concise"


class HelpdeskTicketStatus(int):
    """Freshdesk ticket status codes."""
    OPEN = 2
    PENDING = 3
    RESOLVED = 4
    CLOSED = 5


# ========== Lists for validation ==========

VALID_TONES = [ReplyTone.PROFESSIONAL, ReplyTone.FRIENDLY, ReplyTone.CONCISE]
LEARNABLE_STATUSES = [HelpdeskTicketStatus.RESOLVED, HelpdeskTicketStatus.CLOSED]

LEARNED_DOCUMENT_PREFIX = "Learned from Freshdesk"
