"""Chroma implementation of the vector-store abstraction.

``chromadb``'s HTTP client is synchronous, so every call is pushed to a
worker thread with :func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import chromadb
import httpx

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

_CHROMA_SPACES = {"cosine": "cosine", "dot": "ip", "euclid": "l2"}


def _build_chroma_where(filters: list[MetadataFilter]) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "gt": "$gt",
        "gte": "$gte",
        "lt": "$lt",
        "lte": "$lte",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _classify(exc: Exception) -> StoreError:
    if isinstance(exc, StoreError):
        return exc
    message = f"{type(exc).__name__}: {exc}"
    if "already exists" in str(exc).lower():
        return AlreadyExistsError(message)
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return TransientStoreError(message)
    return PermanentStoreError(message)


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    client:
        Pre-built client (e.g. ``chromadb.EphemeralClient()``); overrides
        *host* and *port*.
    """

    def __init__(
        self,
        collection_name: str = settings.collection_name,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        client: Any | None = None,
    ) -> None:
        super().__init__(collection_name)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collection: Any | None = None

    async def _run(self, operation: str, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except Exception as exc:
            error = _classify(exc)
            logger.debug("Chroma %s failed: %s", operation, error)
            raise error from exc

    def _get_collection(self) -> Any:
        if self._collection is None:
            self._collection = self._client.get_collection(self.collection_name)
        return self._collection

    # -- collection management ------------------------------------------------

    async def list_collections(self) -> list[str]:
        collections = await self._run("list_collections", self._client.list_collections)
        # chromadb 0.6 returns names, other releases return Collection objects.
        return [getattr(c, "name", c) for c in collections]

    async def create_collection(self, vector_size: int, distance: str) -> None:
        # Chroma fixes the dimension on first insert; only the space is configured.
        self._collection = await self._run(
            "create_collection",
            self._client.create_collection,
            name=self.collection_name,
            metadata={"hnsw:space": _CHROMA_SPACES[distance]},
        )

    async def create_payload_index(self, field: str, schema: str) -> None:
        logger.debug("Chroma indexes metadata automatically; skipping index on %s", field)

    # -- points -----------------------------------------------------------------

    async def upsert(self, points: list[Point]) -> None:
        def _upsert() -> None:
            self._get_collection().upsert(
                ids=[str(p.id) for p in points],
                embeddings=[p.vector for p in points],
                documents=[p.payload.text for p in points],
                metadatas=[
                    {"file_id": p.payload.file_id, "chunk_index": p.payload.chunk_index}
                    for p in points
                ],
            )

        await self._run("upsert", _upsert)

    async def query(
        self,
        vector: list[float],
        *,
        limit: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        where = _build_chroma_where(filters) if filters else None

        def _query() -> dict[str, Any]:
            return self._get_collection().query(
                query_embeddings=[vector],
                n_results=limit,
                where=where,
                include=["documents", "metadatas", "distances"],
            )

        results = await self._run("query", _query)

        hits: list[SearchHit] = []
        ids = results.get("ids", [[]])[0]
        docs = results.get("documents", [[]])[0]
        metas = results.get("metadatas", [[]])[0]
        distances = results.get("distances", [[]])[0]

        for point_id, content, meta, dist in zip(ids, docs, metas, distances):
            # Cosine space returns 1 - cosine similarity.
            payload = {**(meta or {}), "text": content or ""}
            hits.append(SearchHit.from_payload(point_id, 1.0 - dist, payload))
        return hits

    async def scroll(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int = 1000,
    ) -> list[StoredChunk]:
        where = _build_chroma_where(filters) if filters else None

        def _get() -> dict[str, Any]:
            return self._get_collection().get(
                where=where,
                limit=limit,
                include=["documents", "metadatas"],
            )

        results = await self._run("get", _get)
        return [
            StoredChunk(
                point_id=point_id,
                file_id=meta["file_id"],
                text=content or "",
                chunk_index=meta["chunk_index"],
            )
            for point_id, content, meta in zip(
                results.get("ids", []), results.get("documents", []), results.get("metadatas", [])
            )
        ]

    # -- lifecycle ----------------------------------------------------------------

    async def health_check(self) -> bool:
        try:
            await asyncio.to_thread(self._client.heartbeat)
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
