"""Factory for vector-store backends and the gateway built on them."""

from __future__ import annotations

import logging

from study_retrieval.config import Settings, settings
from study_retrieval.retrieval.base import VectorStoreBase
from study_retrieval.retrieval.gateway import RetryPolicy, VectorStoreGateway

logger = logging.getLogger(__name__)


def create_vector_store(cfg: Settings = settings) -> VectorStoreBase:
    """Instantiate the backend selected by ``cfg.vector_backend``.

    Backends are imported lazily so only the selected client library has
    to be importable.
    """
    backend = cfg.vector_backend
    logger.info("Using %s vector store, collection %s", backend, cfg.collection_name)

    if backend == "qdrant":
        from study_retrieval.retrieval.qdrant_store import QdrantVectorStore

        return QdrantVectorStore(
            cfg.collection_name,
            url=cfg.qdrant_url,
            api_key=cfg.qdrant_api_key,
            timeout=cfg.request_timeout,
        )
    if backend == "chroma":
        from study_retrieval.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore(cfg.collection_name, host=cfg.chroma_host, port=cfg.chroma_port)

    raise ValueError(f"Unsupported vector_backend={backend!r}")


def create_gateway(cfg: Settings = settings, store: VectorStoreBase | None = None) -> VectorStoreGateway:
    """Build a :class:`VectorStoreGateway` configured from *cfg*."""
    return VectorStoreGateway(
        store if store is not None else create_vector_store(cfg),
        vector_size=cfg.vector_size,
        distance=cfg.distance,
        batch_size=cfg.upsert_batch_size,
        retry_policy=RetryPolicy.from_settings(cfg),
        timeout=cfg.request_timeout,
        deterministic_ids=cfg.deterministic_point_ids,
    )
