"""Abstract base class for vector-store backends.

A backend is bound to one collection and exposes the raw operations the
:class:`~study_retrieval.retrieval.gateway.VectorStoreGateway` builds its
policies on (bootstrap, batching, retry, filtering). Backends never retry
on their own; instead they translate native exceptions into
:class:`~study_retrieval.errors.TransientStoreError`,
:class:`~study_retrieval.errors.PermanentStoreError` or
:class:`~study_retrieval.errors.AlreadyExistsError` so the gateway can
decide what to do.

Adding a new backend (Pinecone, Weaviate, …) only requires subclassing
:class:`VectorStoreBase` and implementing the abstract methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from study_retrieval.retrieval.models import MetadataFilter, Point, SearchHit, StoredChunk


class VectorStoreBase(ABC):
    """Backend-agnostic async vector-store interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    # -- collection management ------------------------------------------------

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """Return the names of every collection on the server."""
        ...

    @abstractmethod
    async def create_collection(self, vector_size: int, distance: str) -> None:
        """Create the bound collection.

        Raises :class:`AlreadyExistsError` if another creator got there first.
        """
        ...

    async def collection_vector_size(self) -> int | None:
        """Return the bound collection's vector dimension, if the backend knows it."""
        return None

    @abstractmethod
    async def create_payload_index(self, field: str, schema: str) -> None:
        """Index payload *field* for filtered search.

        Raises :class:`AlreadyExistsError` when the index already exists.
        """
        ...

    # -- points -----------------------------------------------------------------

    @abstractmethod
    async def upsert(self, points: list[Point]) -> None:
        """Write *points* and return once the store has acknowledged them."""
        ...

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        *,
        limit: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[SearchHit]:
        """Return up to *limit* nearest points, best first."""
        ...

    @abstractmethod
    async def scroll(
        self,
        *,
        filters: list[MetadataFilter] | None = None,
        limit: int = 1000,
    ) -> list[StoredChunk]:
        """Return stored chunks matching *filters*, in no particular order."""
        ...

    # -- lifecycle ----------------------------------------------------------------

    @abstractmethod
    async def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    async def close(self) -> None:
        """Release client resources.  No-op by default."""
        return None
