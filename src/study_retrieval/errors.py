"""Error taxonomy for the indexing and retrieval pipeline.

Every failure that crosses a module boundary is one of these types, so
callers can tell a retryable vector-store hiccup from a broken document
and know how much of a document was durably stored before things went
wrong.
"""

from __future__ import annotations


class StudyRetrievalError(Exception):
    """Base class for all pipeline errors."""


class EmbeddingError(StudyRetrievalError):
    """Raised when a vector could not be produced for a piece of text.

    ``file_id`` and ``chunk_index`` are filled in by the ingestion
    orchestrator; they are ``None`` when the embedder is called directly.
    """

    def __init__(
        self,
        message: str,
        *,
        file_id: int | None = None,
        chunk_index: int | None = None,
    ) -> None:
        self.file_id = file_id
        self.chunk_index = chunk_index
        if file_id is not None or chunk_index is not None:
            message = f"{message} (file_id={file_id}, chunk_index={chunk_index})"
        super().__init__(message)


class DimensionMismatchError(StudyRetrievalError, ValueError):
    """A vector's length differs from the collection's fixed dimension."""

    def __init__(self, expected: int, actual: int, *, context: str = "vector") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{context} has dimension {actual}, expected {expected}")


class StoreError(StudyRetrievalError):
    """Base class for failures talking to the vector store."""


class TransientStoreError(StoreError):
    """Network, timeout or server-side failure; safe to retry."""


class PermanentStoreError(StoreError):
    """The store rejected the request (bad payload, bad filter, …); retrying won't help."""


class AlreadyExistsError(PermanentStoreError):
    """A collection or payload index with the requested name already exists."""


class CollectionBootstrapError(StoreError):
    """The target collection could not be created or is incompatible."""

    def __init__(self, collection_name: str, reason: str) -> None:
        self.collection_name = collection_name
        super().__init__(f"Collection {collection_name!r} bootstrap failed: {reason}")


class BatchUpsertError(StoreError):
    """A batch could not be stored; earlier batches were.

    ``stored_count`` is the number of chunks durably written before the
    failing batch, which always starts at ``batch_offset``.
    """

    def __init__(
        self,
        *,
        file_id: int,
        stored_count: int,
        total_count: int,
        batch_offset: int,
        reason: str,
    ) -> None:
        self.file_id = file_id
        self.stored_count = stored_count
        self.total_count = total_count
        self.batch_offset = batch_offset
        super().__init__(
            f"Upsert failed for file_id={file_id} at batch offset {batch_offset} "
            f"({stored_count}/{total_count} chunks stored): {reason}"
        )
