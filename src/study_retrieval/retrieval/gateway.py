"""Vector-store gateway — collection bootstrap, batched upsert and filtered search.

The gateway sits between the ingestion pipeline and a concrete
:class:`~study_retrieval.retrieval.base.VectorStoreBase` backend and owns
every policy decision about talking to the store:

* the collection is created lazily on first use, and concurrent or
  repeated bootstraps are harmless;
* points are written in fixed-size batches, in document order, each
  batch retried with exponential backoff on transient failures only;
* a failed write reports how many chunks were stored before it;
* every backend call is bounded by a client-side timeout.

Usage::

    gateway = VectorStoreGateway(QdrantVectorStore())
    stored = await gateway.store_chunks(file_id, embedded_chunks)
    hits = await gateway.search(query_vector, limit=5, file_id=file_id)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from study_retrieval.config import Settings, settings
from study_retrieval.errors import (
    AlreadyExistsError,
    BatchUpsertError,
    CollectionBootstrapError,
    DimensionMismatchError,
    StoreError,
    TransientStoreError,
)
from study_retrieval.ingestion.models import EmbeddedChunk
from study_retrieval.retrieval.base import VectorStoreBase
from study_retrieval.retrieval.models import MetadataFilter, Point, SearchHit, StoredChunk

logger = logging.getLogger(__name__)

T = TypeVar("T")

FILE_ID_FIELD = "file_id"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for batch upserts.

    The n-th retry waits ``initial_delay * multiplier ** (n - 1)`` seconds,
    capped at ``max_delay``.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 5.0

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> RetryPolicy:
        return cls(
            max_attempts=cfg.upsert_max_attempts,
            initial_delay=cfg.upsert_initial_delay,
            multiplier=cfg.upsert_backoff_multiplier,
            max_delay=cfg.upsert_max_delay,
        )


class VectorStoreGateway:
    """Policy layer over a vector-store backend.

    Parameters
    ----------
    store:
        Backend bound to the target collection.
    vector_size:
        Fixed dimension of every stored and query vector.
    distance:
        Distance metric the collection is created with.
    batch_size:
        Points per upsert call.
    retry_policy:
        Backoff applied to each batch upsert.
    timeout:
        Seconds allowed for any single backend call; exceeding it counts
        as a transient failure.
    deterministic_ids:
        Derive point ids from ``(file_id, chunk_index)`` instead of random UUIDs.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        *,
        vector_size: int = settings.vector_size,
        distance: str = settings.distance,
        batch_size: int = settings.upsert_batch_size,
        retry_policy: RetryPolicy | None = None,
        timeout: float = settings.request_timeout,
        deterministic_ids: bool = settings.deterministic_point_ids,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._store = store
        self.vector_size = vector_size
        self.distance = distance
        self.batch_size = batch_size
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.timeout = timeout
        self.deterministic_ids = deterministic_ids
        self._ready = False
        self._bootstrap_lock = asyncio.Lock()

    @property
    def collection_name(self) -> str:
        return self._store.collection_name

    @property
    def store(self) -> VectorStoreBase:
        return self._store

    # -- bootstrap --------------------------------------------------------------

    async def ensure_collection(self) -> None:
        """Create the collection and its ``file_id`` index if they are missing.

        Safe to call repeatedly and concurrently; only the first call per
        gateway talks to the store. A collection created by someone else
        in the meantime counts as success.

        Raises
        ------
        CollectionBootstrapError
            When the collection cannot be listed or created, or exists
            with a different vector dimension.
        """
        if self._ready:
            return
        async with self._bootstrap_lock:
            if self._ready:
                return
            name = self.collection_name
            try:
                existing = await self._call(self._store.list_collections())
                if name not in existing:
                    await self._create_collection()
                else:
                    logger.info("Collection %s already exists", name)
                    await self._check_existing_dimension()
            except CollectionBootstrapError:
                raise
            except StoreError as exc:
                raise CollectionBootstrapError(name, str(exc)) from exc

            await self._ensure_payload_index()
            self._ready = True

    async def _create_collection(self) -> None:
        try:
            await self._call(self._store.create_collection(self.vector_size, self.distance))
            logger.info(
                "Created collection %s (size=%d, distance=%s)",
                self.collection_name,
                self.vector_size,
                self.distance,
            )
        except AlreadyExistsError:
            logger.info("Collection %s was created concurrently", self.collection_name)
            await self._check_existing_dimension()

    async def _check_existing_dimension(self) -> None:
        size = await self._call(self._store.collection_vector_size())
        if size is not None and size != self.vector_size:
            raise CollectionBootstrapError(
                self.collection_name,
                f"existing vector size {size} does not match configured {self.vector_size}",
            )

    async def _ensure_payload_index(self) -> None:
        try:
            await self._call(self._store.create_payload_index(FILE_ID_FIELD, "integer"))
        except AlreadyExistsError:
            logger.debug("Payload index on %s already exists", FILE_ID_FIELD)
        except StoreError as exc:
            # Filtering still works without the index, only slower.
            logger.warning("Could not create payload index on %s: %s", FILE_ID_FIELD, exc)

    # -- write path ---------------------------------------------------------------

    async def store_chunks(self, file_id: int | str, chunks: Sequence[EmbeddedChunk]) -> int:
        """Upsert *chunks* for *file_id* in batches and return how many were stored.

        Parameters
        ----------
        file_id:
            Document identifier; coerced to ``int`` for the payload.
        chunks:
            Embedded chunks in document order.

        Raises
        ------
        DimensionMismatchError
            If any vector has the wrong length; nothing is written.
        CollectionBootstrapError
            If the collection cannot be prepared; nothing is written.
        BatchUpsertError
            If a batch fails permanently or exhausts its retries. Carries
            the number of chunks stored by earlier batches.
        """
        file_id = int(file_id)
        for chunk in chunks:
            self._check_dimension(chunk.embedding, context=f"chunk {chunk.index}")
        if not chunks:
            return 0

        await self.ensure_collection()

        stored = 0
        total = len(chunks)
        for offset in range(0, total, self.batch_size):
            batch = chunks[offset : offset + self.batch_size]
            # Built once so every retry of this batch reuses the same ids.
            points = [
                Point.from_chunk(file_id, chunk, deterministic_id=self.deterministic_ids)
                for chunk in batch
            ]
            try:
                await self._upsert_with_retry(points)
            except StoreError as exc:
                logger.error(
                    "Giving up on batch at offset %d for file %d: %s", offset, file_id, exc
                )
                raise BatchUpsertError(
                    file_id=file_id,
                    stored_count=stored,
                    total_count=total,
                    batch_offset=offset,
                    reason=str(exc),
                ) from exc
            stored += len(points)
            logger.info("Stored %d/%d chunks for file %d", stored, total, file_id)

        return stored

    async def _upsert_with_retry(self, points: list[Point]) -> None:
        policy = self.retry_policy
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransientStoreError),
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.initial_delay,
                exp_base=policy.multiplier,
                max=policy.max_delay,
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                logger.debug("Upserting batch of %d points", len(points))
                await self._call(self._store.upsert(points))

    # -- read path ----------------------------------------------------------------

    async def search(
        self,
        query_vector: Sequence[float],
        limit: int = settings.search_default_limit,
        file_id: int | str | None = None,
    ) -> list[SearchHit]:
        """Return the *limit* stored chunks closest to *query_vector*.

        When *file_id* is given only that document's chunks are searched;
        ``None`` searches across all documents. Hits come back in the
        store's ranking order (cosine similarity, descending). Errors are
        not retried.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        vector = self._check_dimension(query_vector, context="query vector")
        await self.ensure_collection()

        filters = None
        if file_id is not None:
            filters = [MetadataFilter.equals(FILE_ID_FIELD, int(file_id))]
        return await self._call(self._store.query(vector, limit=limit, filters=filters))

    async def fetch_document_chunks(self, file_id: int | str, limit: int = 1000) -> list[StoredChunk]:
        """Return up to *limit* stored chunks of one document, ordered by ``chunk_index``."""
        await self.ensure_collection()
        filters = [MetadataFilter.equals(FILE_ID_FIELD, int(file_id))]
        chunks = await self._call(self._store.scroll(filters=filters, limit=limit))
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def document_text(self, file_id: int | str, limit: int = 1000) -> str:
        """Reassemble a document's stored text, chunks joined by a space."""
        chunks = await self.fetch_document_chunks(file_id, limit=limit)
        return " ".join(c.text for c in chunks)

    async def health_check(self) -> bool:
        return await self._store.health_check()

    async def close(self) -> None:
        await self._store.close()

    # -- internals ----------------------------------------------------------------

    def _check_dimension(self, vector: Sequence[float], *, context: str) -> list[float]:
        if len(vector) != self.vector_size:
            raise DimensionMismatchError(self.vector_size, len(vector), context=context)
        return list(vector)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransientStoreError(
                f"Vector store call timed out after {self.timeout:.1f}s"
            ) from exc
