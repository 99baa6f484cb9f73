"""Unit tests for document loading, settings and the backend factory."""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeVectorStore
from study_retrieval.config import Settings
from study_retrieval.ingestion.loader import load_document_text
from study_retrieval.retrieval.factory import create_gateway, create_vector_store


# ── Loader ─────────────────────────────────────────────────────────────


class TestLoadDocumentText:
    def test_plain_text(self, tmp_path: Path) -> None:
        path = tmp_path / "lecture.txt"
        path.write_text("Newton's first law. Inertia.", encoding="utf-8")
        assert load_document_text(path) == "Newton's first law. Inertia."

    def test_markdown_suffix_is_case_insensitive(self, tmp_path: Path) -> None:
        path = tmp_path / "SUMMARY.MD"
        path.write_text("# Optics\nLight bends.", encoding="utf-8")
        assert "Light bends." in load_document_text(str(path))

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_document_text(tmp_path / "nope.pdf")

    def test_unsupported_type(self, tmp_path: Path) -> None:
        path = tmp_path / "slides.pptx"
        path.write_bytes(b"PK")
        with pytest.raises(ValueError, match="Unsupported document type"):
            load_document_text(path)


# ── Settings / factory ─────────────────────────────────────────────────


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UPSERT_BATCH_SIZE", "25")
    monkeypatch.setenv("VECTOR_BACKEND", "chroma")
    cfg = Settings()
    assert cfg.upsert_batch_size == 25
    assert cfg.vector_backend == "chroma"


def test_create_gateway_applies_settings() -> None:
    cfg = Settings(
        vector_size=8,
        upsert_batch_size=7,
        upsert_max_attempts=5,
        request_timeout=2.5,
        deterministic_point_ids=True,
    )
    store = FakeVectorStore()
    gateway = create_gateway(cfg, store=store)

    assert gateway.store is store
    assert gateway.vector_size == 8
    assert gateway.batch_size == 7
    assert gateway.retry_policy.max_attempts == 5
    assert gateway.timeout == 2.5
    assert gateway.deterministic_ids is True


def test_create_vector_store_qdrant_memory() -> None:
    pytest.importorskip("qdrant_client")
    from study_retrieval.retrieval.qdrant_store import QdrantVectorStore

    store = create_vector_store(Settings(qdrant_url=":memory:", collection_name="notes"))
    assert isinstance(store, QdrantVectorStore)
    assert store.collection_name == "notes"


def test_create_vector_store_rejects_unknown_backend() -> None:
    cfg = Settings().model_copy(update={"vector_backend": "pinecone"})
    with pytest.raises(ValueError, match="Unsupported vector_backend"):
        create_vector_store(cfg)
