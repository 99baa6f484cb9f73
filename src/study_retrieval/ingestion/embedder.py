"""Text → vector embedding.

The embedder is an explicit service object: build one at startup and
pass it to the orchestrator and retriever. Tests substitute any
:class:`EmbedderBase` subclass.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

from study_retrieval.config import settings
from study_retrieval.errors import DimensionMismatchError, EmbeddingError

if TYPE_CHECKING:
    from langchain_huggingface import HuggingFaceEmbeddings

logger = logging.getLogger(__name__)


class EmbedderBase(ABC):
    """Maps one piece of text to one fixed-length, L2-normalised vector.

    Parameters
    ----------
    dimension:
        Length of every vector this embedder returns.
    """

    def __init__(self, dimension: int) -> None:
        self.dimension = dimension

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*; raise :class:`EmbeddingError` on failure."""
        ...

    async def embed_many(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed *texts* one after another, in order."""
        return [await self.embed(text) for text in texts]

    def _check(self, vector: Sequence[float]) -> list[float]:
        if len(vector) != self.dimension:
            raise DimensionMismatchError(self.dimension, len(vector), context="embedding")
        return [float(x) for x in vector]


class HuggingFaceEmbedder(EmbedderBase):
    """Sentence-transformer embedder (mean pooled, normalised).

    The model is loaded on first use and then shared by every caller;
    inference is stateless, so concurrent ingestions can use the same
    instance. Inference runs in a worker thread to keep the event loop free.

    Parameters
    ----------
    model_name:
        HuggingFace model id.
    dimension:
        Expected output dimension of *model_name*.
    device:
        Torch device the model is loaded on.
    """

    def __init__(
        self,
        model_name: str = settings.embedding_model,
        *,
        dimension: int = settings.vector_size,
        device: str = settings.embedding_device,
    ) -> None:
        super().__init__(dimension)
        self.model_name = model_name
        self.device = device
        self._model: HuggingFaceEmbeddings | None = None
        self._load_lock = threading.Lock()

    @property
    def model(self) -> HuggingFaceEmbeddings:
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    from langchain_huggingface import HuggingFaceEmbeddings

                    logger.info("Loading embedding model %s on %s", self.model_name, self.device)
                    self._model = HuggingFaceEmbeddings(
                        model_name=self.model_name,
                        model_kwargs={"device": self.device},
                        encode_kwargs={"normalize_embeddings": True},
                    )
        return self._model

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def embed_sync(self, text: str) -> list[float]:
        """Blocking variant of :meth:`embed`."""
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty or non-string input")
        try:
            vector = self.model.embed_query(text)
        except Exception as exc:
            raise EmbeddingError(f"Embedding model failed: {exc}") from exc
        return self._check(vector)

    async def embed(self, text: str) -> list[float]:
        return await asyncio.to_thread(self.embed_sync, text)
