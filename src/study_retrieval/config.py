"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Vector store
    vector_backend: Literal["qdrant", "chroma"] = "qdrant"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = Field(default=None, description="Only needed for Qdrant Cloud")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    collection_name: str = "document_chunks"
    vector_size: int = Field(default=384, ge=1)
    distance: Literal["cosine"] = "cosine"
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Client-side timeout (seconds) applied to every vector-store call",
    )

    # Upsert batching / retry
    upsert_batch_size: int = Field(default=100, ge=1)
    upsert_max_attempts: int = Field(default=3, ge=1)
    upsert_initial_delay: float = Field(default=1.0, ge=0)
    upsert_backoff_multiplier: float = Field(default=2.0, ge=1)
    upsert_max_delay: float = Field(default=5.0, ge=0)
    deterministic_point_ids: bool = Field(
        default=False,
        description=(
            "Derive point ids from (file_id, chunk_index) so re-ingesting a document "
            "overwrites its points instead of appending new ones."
        ),
    )

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_device: str = "cpu"

    # Chunking / search
    chunk_max_length: int = Field(default=1000, ge=1)
    search_default_limit: int = Field(default=5, ge=1)

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Module-level singleton; import `settings` wherever needed.
settings = Settings()
