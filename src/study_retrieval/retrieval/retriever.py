"""Semantic retriever — text queries over the indexed documents.

This module is the **primary public interface** for retrieval. It embeds
the query with the same embedder used at ingestion time, so query and
chunk vectors live in the same space.

Usage::

    retriever = SemanticRetriever(embedder, gateway)
    hits = await retriever.search("What is osmosis?", k=5, file_id=42)
    for hit in hits:
        print(hit.short_ref(), hit.text[:80])
"""

from __future__ import annotations

import logging

from study_retrieval.ingestion.embedder import EmbedderBase
from study_retrieval.retrieval.gateway import VectorStoreGateway
from study_retrieval.retrieval.models import SearchHit

logger = logging.getLogger(__name__)


class SemanticRetriever:
    """High-level retriever over a :class:`VectorStoreGateway`.

    Parameters
    ----------
    embedder:
        Embedder used to vectorise query text.
    gateway:
        Gateway the search is delegated to.
    default_k:
        Default number of results returned by :meth:`search`.
    score_threshold:
        Minimum similarity score; results below this are discarded.
    """

    def __init__(
        self,
        embedder: EmbedderBase,
        gateway: VectorStoreGateway,
        *,
        default_k: int = 5,
        score_threshold: float = 0.0,
    ) -> None:
        self._embedder = embedder
        self._gateway = gateway
        self.default_k = default_k
        self.score_threshold = score_threshold

    # -- public API -----------------------------------------------------------

    async def search(
        self,
        query: str,
        *,
        k: int | None = None,
        file_id: int | None = None,
    ) -> list[SearchHit]:
        """Run a semantic search for *query*.

        Parameters
        ----------
        query:
            Natural-language query string.
        k:
            Number of results (defaults to ``self.default_k``).
        file_id:
            Restrict the search to one document.

        Returns
        -------
        list[SearchHit]
            Ranked hits, best first.
        """
        embedding = await self._embedder.embed(query)
        return await self.search_by_embedding(embedding, k=k, file_id=file_id)

    async def search_by_embedding(
        self,
        embedding: list[float],
        *,
        k: int | None = None,
        file_id: int | None = None,
    ) -> list[SearchHit]:
        """Same as :meth:`search` but accepts a pre-computed embedding."""
        k = k or self.default_k
        hits = await self._gateway.search(embedding, limit=k, file_id=file_id)
        kept = [h for h in hits if h.score >= self.score_threshold]
        logger.debug("Search returned %d hits, %d above threshold", len(hits), len(kept))
        return kept
