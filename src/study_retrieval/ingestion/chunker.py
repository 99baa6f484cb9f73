"""Sentence-aligned text chunking."""

from __future__ import annotations

import re

from study_retrieval.ingestion.models import Chunk

_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")
_SEPARATOR = ". "


def split_sentences(text: str) -> list[str]:
    """Split *text* on runs of ``.``, ``!`` and ``?``, dropping empty pieces."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def chunk_text(text: str, max_length: int = 1000) -> list[Chunk]:
    """Greedily pack the sentences of *text* into chunks of about *max_length* chars.

    Every sentence is re-terminated with ``". "`` and a chunk is flushed
    as soon as the next sentence would push it past *max_length*. Chunk
    boundaries always fall between sentences, so a single sentence longer
    than *max_length* is emitted as one over-long chunk rather than being
    cut.

    Parameters
    ----------
    text:
        Raw extracted document text.
    max_length:
        Soft upper bound on chunk length in characters.

    Returns
    -------
    list[Chunk]
        Chunks in document order, indexed from 0.
    """
    if max_length < 1:
        raise ValueError(f"max_length must be >= 1, got {max_length}")

    pieces: list[str] = []
    buffer = ""
    for sentence in split_sentences(text):
        if buffer and len(buffer) + len(sentence) > max_length:
            pieces.append(buffer.strip())
            buffer = ""
        buffer += sentence + _SEPARATOR
    if buffer.strip():
        pieces.append(buffer.strip())

    return [Chunk(text=piece, index=i) for i, piece in enumerate(pieces)]
