"""Data models flowing through the ingestion pipeline."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Chunk(BaseModel):
    """A sentence-aligned slice of a document's text.

    ``index`` is the chunk's position within the document, starting at 0.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    index: int = Field(ge=0)


class EmbeddedChunk(BaseModel):
    """A :class:`Chunk` paired with its embedding vector."""

    model_config = ConfigDict(frozen=True)

    text: str
    embedding: list[float]
    index: int = Field(ge=0)

    @classmethod
    def from_chunk(cls, chunk: Chunk, embedding: list[float]) -> EmbeddedChunk:
        return cls(text=chunk.text, embedding=embedding, index=chunk.index)


class IngestionStatus(str, Enum):
    """Lifecycle of one document's ingestion."""

    PENDING = "pending"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETED = "completed"
    PARTIALLY_STORED = "partially_stored"
    FAILED = "failed"


class IngestionResult(BaseModel):
    """Outcome of :meth:`IngestionOrchestrator.ingest`.

    Attributes
    ----------
    file_id:
        Document identifier the chunks were stored under.
    status:
        ``COMPLETED`` or ``PARTIALLY_STORED``; failures raise instead.
    stored_count:
        Chunks durably written by this run.
    total_chunks:
        Chunks the document produced in total.
    start_index:
        First chunk index this run embedded (non-zero when resuming).
    error:
        Failure message when the run stopped early.
    """

    file_id: int
    status: IngestionStatus
    stored_count: int = 0
    total_chunks: int = 0
    start_index: int = 0
    error: str | None = None

    @property
    def resume_from(self) -> int:
        """Chunk index a follow-up run should start at."""
        return self.start_index + self.stored_count

    @property
    def complete(self) -> bool:
        return self.status is IngestionStatus.COMPLETED
