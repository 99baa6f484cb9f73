"""Domain models for vector-store points, filters and search hits."""

from __future__ import annotations

from typing import Any
from uuid import UUID, uuid4, uuid5

from pydantic import BaseModel, Field

from study_retrieval.ingestion.models import EmbeddedChunk

# Namespace for deterministic point ids derived from (file_id, chunk_index).
POINT_ID_NAMESPACE = UUID("6f1c1f2e-4b8a-5d3e-9a51-3c2d7e0b9f14")


class MetadataFilter(BaseModel):
    """Declarative payload filter for vector-store queries.

    Attributes
    ----------
    field:
        The payload key to filter on (e.g. ``"file_id"``).
    operator:
        Comparison operator — one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)


class PointPayload(BaseModel):
    """Payload stored with every vector.

    Changing this schema breaks ``file_id`` filtering for points that
    were stored before the change.
    """

    file_id: int
    text: str
    chunk_index: int = Field(ge=0)


class Point(BaseModel):
    """One persisted (id, vector, payload) record."""

    id: UUID
    vector: list[float]
    payload: PointPayload

    @classmethod
    def from_chunk(
        cls,
        file_id: int,
        chunk: EmbeddedChunk,
        *,
        deterministic_id: bool = False,
    ) -> Point:
        """Build a point for *chunk*.

        Ids are random by default, so re-ingesting a document appends new
        points. With *deterministic_id* the id is derived from
        ``(file_id, chunk.index)`` and a re-ingest overwrites.
        """
        point_id = (
            uuid5(POINT_ID_NAMESPACE, f"{file_id}:{chunk.index}") if deterministic_id else uuid4()
        )
        return cls(
            id=point_id,
            vector=chunk.embedding,
            payload=PointPayload(file_id=file_id, text=chunk.text, chunk_index=chunk.index),
        )


class SearchHit(BaseModel):
    """A single similarity-search result.

    Attributes
    ----------
    point_id:
        Vector-store id of the matched point.
    text:
        The chunk text stored in the payload.
    summary:
        Optional summary stored alongside the chunk.
    score:
        Cosine similarity (higher = more similar).
    file_id:
        Document the chunk belongs to.
    chunk_index:
        Position of the chunk inside its document.
    """

    point_id: str
    text: str
    summary: str | None = None
    score: float
    file_id: int | None = None
    chunk_index: int | None = None

    @classmethod
    def from_payload(cls, point_id: Any, score: float, payload: dict[str, Any] | None) -> SearchHit:
        payload = payload or {}
        return cls(
            point_id=str(point_id),
            text=payload.get("text", ""),
            summary=payload.get("summary"),
            score=float(score),
            file_id=payload.get("file_id"),
            chunk_index=payload.get("chunk_index"),
        )

    def short_ref(self) -> str:
        """Return a compact ``[file§chunk]`` reference string."""
        file_id = self.file_id if self.file_id is not None else "?"
        chunk = self.chunk_index if self.chunk_index is not None else "?"
        return f"[{file_id}§{chunk}]"

    def __str__(self) -> str:  # noqa: D105
        return f"{self.short_ref()} {self.text[:120]}…"


class StoredChunk(BaseModel):
    """A chunk read back from the store without a query (scroll)."""

    point_id: str
    file_id: int
    text: str
    chunk_index: int
