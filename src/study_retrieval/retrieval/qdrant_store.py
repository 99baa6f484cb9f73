"""Qdrant implementation of the vector-store abstraction."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from qdrant_client import AsyncQdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from study_retrieval.config import settings
from study_retrieval.errors import (
    AlreadyExistsError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from study_retrieval.retrieval.base import VectorStoreBase
from study_retrieval.retrieval.models import MetadataFilter, Point, SearchHit, StoredChunk

logger = logging.getLogger(__name__)

_DISTANCES = {
    "cosine": models.Distance.COSINE,
    "dot": models.Distance.DOT,
    "euclid": models.Distance.EUCLID,
}

_PAYLOAD_SCHEMAS = {
    "integer": models.PayloadSchemaType.INTEGER,
    "keyword": models.PayloadSchemaType.KEYWORD,
    "float": models.PayloadSchemaType.FLOAT,
}

_RANGE_OPS = {"gt", "gte", "lt", "lte"}

# Status codes worth another attempt; every other 4xx is the caller's fault.
_RETRYABLE_STATUS = {408, 429}


def _build_qdrant_filter(filters: list[MetadataFilter] | None) -> models.Filter | None:
    """Convert a list of :class:`MetadataFilter` to a Qdrant ``Filter``."""
    if not filters:
        return None

    must: list[models.Condition] = []
    must_not: list[models.Condition] = []
    for f in filters:
        if f.operator == "eq":
            must.append(models.FieldCondition(key=f.field, match=models.MatchValue(value=f.value)))
        elif f.operator == "ne":
            must_not.append(models.FieldCondition(key=f.field, match=models.MatchValue(value=f.value)))
        elif f.operator == "in":
            must.append(models.FieldCondition(key=f.field, match=models.MatchAny(any=list(f.value))))
        elif f.operator == "nin":
            must_not.append(models.FieldCondition(key=f.field, match=models.MatchAny(any=list(f.value))))
        elif f.operator in _RANGE_OPS:
            must.append(models.FieldCondition(key=f.field, range=models.Range(**{f.operator: f.value})))
        else:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")

    return models.Filter(must=must or None, must_not=must_not or None)


def _response_detail(exc: UnexpectedResponse) -> str:
    content = exc.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    return f"{exc.status_code} {exc.reason_phrase}: {content}"


def _classify(exc: Exception) -> StoreError:
    """Map a qdrant-client / transport exception onto the store error taxonomy."""
    if isinstance(exc, UnexpectedResponse):
        detail = _response_detail(exc)
        if exc.status_code == 409 or "already exists" in detail.lower():
            return AlreadyExistsError(detail)
        if exc.status_code is None or exc.status_code >= 500 or exc.status_code in _RETRYABLE_STATUS:
            return TransientStoreError(detail)
        return PermanentStoreError(detail)
    if isinstance(exc, (ResponseHandlingException, httpx.TransportError, ConnectionError, TimeoutError)):
        return TransientStoreError(f"{type(exc).__name__}: {exc}")
    # The embedded (":memory:") client reports duplicates as plain ValueErrors.
    if isinstance(exc, ValueError) and "already exists" in str(exc).lower():
        return AlreadyExistsError(str(exc))
    return PermanentStoreError(f"{type(exc).__name__}: {exc}")


@contextmanager
def _translated(operation: str) -> Iterator[None]:
    try:
        yield
    except StoreError:
        raise
    except Exception as exc:
        error = _classify(exc)
        logger.debug("Qdrant %s failed: %s", operation, error)
        raise error from exc


class QdrantVectorStore(VectorStoreBase):
    """Qdrant-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Qdrant collection.
    url:
        Qdrant server URL. Use ``":memory:"`` for the embedded local mode.
    api_key:
        Optional API key (Qdrant Cloud).
    timeout:
        Per-request HTTP timeout in seconds.
    client:
        Pre-built client; overrides *url*, *api_key* and *timeout*.
    """

    def __init__(
        self,
        collection_name: str = settings.collection_name,
        *,
        url: str = settings.qdrant_url,
        api_key: str | None = settings.qdrant_api_key,
        timeout: float = settings.request_timeout,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        super().__init__(collection_name)
        if client is None:
            if url == ":memory:":
                client = AsyncQdrantClient(location=":memory:")
            else:
                client = AsyncQdrantClient(url=url, api_key=api_key, timeout=int(timeout))
        self._client = client

    # -- collection management ------------------------------------------------

    async def list_collections(self) -> list[str]:
        with _translated("get_collections"):
            response = await self._client.get_collections()
        return [c.name for c in response.collections]

    async def create_collection(self, vector_size: int, distance: str) -> None:
        with _translated("create_collection"):
            await self._client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=vector_size, distance=_DISTANCES[distance]),
            )

    async def collection_vector_size(self) -> int | None:
        with _translated("get_collection"):
            info = await self._client.get_collection(self.collection_name)
        vectors = info.config.params.vectors
        if isinstance(vectors, models.VectorParams):
            return vectors.size
        # Named-vector collections are not produced by this package.
        return None

    async def create_payload_index(self, field: str, schema: str) -> None:
        with _translated("create_payload_index"):
            await self._client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field,
                field_schema=_PAYLOAD_SCHEMAS[schema],
                wait=True,
            )

    # -- points -----------------------------------------------------------------

    async def upsert(self, points: list[Point]) -> None:
        structs = [
            models.PointStruct(id=str(p.id), vector=p.vector, payload=p.payload.model_dump())
            for p in points
        ]
        with _translated("upsert"):
            await self._client.upsert(
                collection_name=self.collection_name,
                points=structs,
                wait=True,
            )

    async def query(
        self,
        vector: list[float],
        *,
        limit: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        query_filter = _build_qdrant_filter(filters)
        with _translated("query_points"):
            response = await self._client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=limit,
                query_filter=query_filter,
                with_payload=True,
            )
        return [SearchHit.from_payload(p.id, p.score, p.payload) for p in response.points]

    async def scroll(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int = 1000,
    ) -> list[StoredChunk]:
        scroll_filter = _build_qdrant_filter(filters)
        with _translated("scroll"):
            records, _next = await self._client.scroll(
                collection_name=self.collection_name,
                scroll_filter=scroll_filter,
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        return [_to_stored_chunk(r.id, r.payload) for r in records]

    # -- lifecycle ----------------------------------------------------------------

    async def health_check(self) -> bool:
        try:
            await self._client.get_collections()
            return True
        except Exception:
            logger.warning("Qdrant health-check failed", exc_info=True)
            return False

    async def close(self) -> None:
        await self._client.close()


def _to_stored_chunk(point_id: Any, payload: dict[str, Any] | None) -> StoredChunk:
    payload = payload or {}
    return StoredChunk(
        point_id=str(point_id),
        file_id=payload["file_id"],
        text=payload.get("text", ""),
        chunk_index=payload["chunk_index"],
    )
