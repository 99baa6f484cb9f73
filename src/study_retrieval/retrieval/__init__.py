"""
Retrieval — vector-store backends, the gateway policy layer and search.

This module wraps the vector store behind a clean interface so that the
ingestion pipeline and the API never need to know which DB is backing
retrieval.

Public surface
--------------
- :class:`VectorStoreGateway` — collection bootstrap, batched upsert, filtered search.
- :class:`SemanticRetriever` — text queries with score thresholding.
- :class:`VectorStoreBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`QdrantVectorStore` — default Qdrant backend.
- :class:`ChromaVectorStore` — Chroma backend.
- :class:`MetadataFilter`, :class:`Point`, :class:`SearchHit` — data models.
- :func:`create_gateway` — settings-driven factory.
"""

from study_retrieval.retrieval.base import VectorStoreBase
from study_retrieval.retrieval.factory import create_gateway, create_vector_store
from study_retrieval.retrieval.gateway import RetryPolicy, VectorStoreGateway
from study_retrieval.retrieval.models import MetadataFilter, Point, PointPayload, SearchHit, StoredChunk
from study_retrieval.retrieval.retriever import SemanticRetriever

__all__ = [
    "ChromaVectorStore",
    "MetadataFilter",
    "Point",
    "PointPayload",
    "QdrantVectorStore",
    "RetryPolicy",
    "SearchHit",
    "SemanticRetriever",
    "StoredChunk",
    "VectorStoreBase",
    "VectorStoreGateway",
    "create_gateway",
    "create_vector_store",
]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import backends to avoid pulling in their client libraries at import time."""
    if name == "QdrantVectorStore":
        from study_retrieval.retrieval.qdrant_store import QdrantVectorStore

        return QdrantVectorStore
    if name == "ChromaVectorStore":
        from study_retrieval.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
