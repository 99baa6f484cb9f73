"""Ingestion orchestrator — chunk, embed and store one document."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Union

from study_retrieval.config import settings
from study_retrieval.errors import BatchUpsertError, EmbeddingError, StudyRetrievalError
from study_retrieval.ingestion.chunker import chunk_text
from study_retrieval.ingestion.embedder import EmbedderBase
from study_retrieval.ingestion.models import EmbeddedChunk, IngestionResult, IngestionStatus
from study_retrieval.retrieval.gateway import VectorStoreGateway

logger = logging.getLogger(__name__)

StatusCallback = Callable[[int, IngestionStatus], Union[Awaitable[None], None]]


class IngestionOrchestrator:
    """Runs ``chunk → embed → store`` for one document at a time.

    Embedding is all-or-nothing: the first chunk that cannot be embedded
    aborts the run before anything is written. Storing is batch-partial:
    if some batches made it, the run ends as ``PARTIALLY_STORED`` and the
    result says where to resume.

    Parameters
    ----------
    embedder:
        Shared embedder instance.
    gateway:
        Vector-store gateway the chunks are written through.
    max_length:
        Soft chunk length bound passed to :func:`chunk_text`.
    """

    def __init__(
        self,
        embedder: EmbedderBase,
        gateway: VectorStoreGateway,
        *,
        max_length: int = settings.chunk_max_length,
    ) -> None:
        self.embedder = embedder
        self.gateway = gateway
        self.max_length = max_length

    async def ingest(
        self,
        file_id: int | str,
        raw_text: str,
        *,
        resume_from: int = 0,
        on_status: StatusCallback | None = None,
    ) -> IngestionResult:
        """Index *raw_text* under *file_id*.

        Parameters
        ----------
        file_id:
            Document identifier.
        raw_text:
            Extracted document text.
        resume_from:
            Skip chunks with a lower index (they were stored by an earlier,
            partially successful run).
        on_status:
            Called with ``(file_id, status)`` on every state transition;
            may be a coroutine function.

        Returns
        -------
        IngestionResult
            ``COMPLETED`` or ``PARTIALLY_STORED``.

        Raises
        ------
        EmbeddingError
            A chunk could not be embedded; nothing was stored.
        BatchUpsertError
            The first batch failed; nothing was stored.
        StoreError
            The collection could not be prepared.
        """
        file_id = int(file_id)
        if resume_from < 0:
            raise ValueError(f"resume_from must be >= 0, got {resume_from}")

        await self._notify(on_status, file_id, IngestionStatus.PENDING)
        chunks = chunk_text(raw_text, self.max_length)
        pending = [c for c in chunks if c.index >= resume_from]
        logger.info(
            "File %d: %d chunks, %d to ingest (resume_from=%d)",
            file_id,
            len(chunks),
            len(pending),
            resume_from,
        )

        await self._notify(on_status, file_id, IngestionStatus.EMBEDDING)
        embedded: list[EmbeddedChunk] = []
        for chunk in pending:
            try:
                vector = await self.embedder.embed(chunk.text)
            except Exception as exc:
                await self._notify(on_status, file_id, IngestionStatus.FAILED)
                raise EmbeddingError(
                    f"Could not embed chunk: {exc}", file_id=file_id, chunk_index=chunk.index
                ) from exc
            embedded.append(EmbeddedChunk.from_chunk(chunk, vector))

        await self._notify(on_status, file_id, IngestionStatus.STORING)
        try:
            stored = await self.gateway.store_chunks(file_id, embedded)
        except BatchUpsertError as exc:
            if exc.stored_count == 0:
                await self._notify(on_status, file_id, IngestionStatus.FAILED)
                raise
            logger.warning(
                "File %d partially stored: %d/%d chunks", file_id, exc.stored_count, exc.total_count
            )
            await self._notify(on_status, file_id, IngestionStatus.PARTIALLY_STORED)
            return IngestionResult(
                file_id=file_id,
                status=IngestionStatus.PARTIALLY_STORED,
                stored_count=exc.stored_count,
                total_chunks=len(chunks),
                start_index=resume_from,
                error=str(exc),
            )
        except StudyRetrievalError:
            await self._notify(on_status, file_id, IngestionStatus.FAILED)
            raise

        await self._notify(on_status, file_id, IngestionStatus.COMPLETED)
        logger.info("File %d ingested: %d chunks stored", file_id, stored)
        return IngestionResult(
            file_id=file_id,
            status=IngestionStatus.COMPLETED,
            stored_count=stored,
            total_chunks=len(chunks),
            start_index=resume_from,
        )

    @staticmethod
    async def _notify(
        callback: StatusCallback | None, file_id: int, status: IngestionStatus
    ) -> None:
        if callback is None:
            return
        result = callback(file_id, status)
        if inspect.isawaitable(result):
            await result
