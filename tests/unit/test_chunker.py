"""Unit tests for the chunker module."""

import pytest

from study_retrieval.ingestion.chunker import chunk_text, split_sentences


def _sentences(count: int, width: int = 60) -> list[str]:
    return [f"Sentence {i:02d} about cell biology".ljust(width, "z") for i in range(count)]


def test_empty_input_returns_no_chunks() -> None:
    assert chunk_text("") == []


def test_whitespace_and_punctuation_only_returns_no_chunks() -> None:
    assert chunk_text("  ... !!! ??  ") == []


def test_single_sentence() -> None:
    chunks = chunk_text("Hello.")
    assert len(chunks) == 1
    assert chunks[0].text == "Hello."
    assert chunks[0].index == 0


def test_sentences_joined_with_period_space() -> None:
    chunks = chunk_text("First one! Second one?  Third one...")
    assert [c.text for c in chunks] == ["First one. Second one. Third one."]


def test_split_sentences_trims_and_drops_empty() -> None:
    assert split_sentences("  A.  .B!?C  ") == ["A", "B", "C"]


def test_long_text_is_split_on_sentence_boundaries() -> None:
    sentences = _sentences(40)
    text = " ".join(s + "." for s in sentences)
    assert 2400 <= len(text) <= 2600

    chunks = chunk_text(text, max_length=1000)

    assert len(chunks) == 3
    assert [c.index for c in chunks] == [0, 1, 2]


def test_chunks_reproduce_all_sentences_in_order() -> None:
    sentences = _sentences(25, width=45)
    chunks = chunk_text(". ".join(sentences), max_length=200)

    recovered: list[str] = []
    for chunk in chunks:
        recovered.extend(split_sentences(chunk.text))
    assert recovered == sentences


@pytest.mark.parametrize("max_length", [1, 50, 120, 333, 1000])
def test_chunks_respect_bound_except_oversized_sentences(max_length: int) -> None:
    sentences = _sentences(30, width=40)
    chunks = chunk_text(" ".join(s + "." for s in sentences), max_length=max_length)

    for chunk in chunks:
        pieces = split_sentences(chunk.text)
        if len(pieces) > 1:
            # trailing "." is the only allowed overshoot
            assert len(chunk.text) <= max_length + 1


def test_oversized_sentence_is_kept_whole() -> None:
    long_sentence = "x" * 150
    chunks = chunk_text(f"Short. {long_sentence}. Tail.", max_length=100)

    assert [c.text for c in chunks] == ["Short.", long_sentence + ".", "Tail."]
    assert len(chunks[1].text) > 100


def test_deterministic() -> None:
    text = " ".join(s + "." for s in _sentences(20))
    assert chunk_text(text, 300) == chunk_text(text, 300)


def test_invalid_max_length_raises() -> None:
    with pytest.raises(ValueError, match="max_length"):
        chunk_text("Hello.", max_length=0)
