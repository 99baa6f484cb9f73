"""Unit tests for the ingestion orchestrator, including the end-to-end flow."""

from __future__ import annotations

import pytest

from fakes import FakeVectorStore, StubEmbedder, unit_vector
from study_retrieval.errors import (
    BatchUpsertError,
    CollectionBootstrapError,
    EmbeddingError,
    PermanentStoreError,
    TransientStoreError,
)
from study_retrieval.ingestion.models import IngestionStatus
from study_retrieval.ingestion.pipeline import IngestionOrchestrator
from study_retrieval.retrieval.gateway import VectorStoreGateway


def _document(count: int = 40, width: int = 60) -> str:
    sentences = [f"Fact {i:02d} about the French revolution".ljust(width, "q") for i in range(count)]
    return " ".join(s + "." for s in sentences)


@pytest.fixture()
def orchestrator(stub_embedder: StubEmbedder, gateway: VectorStoreGateway) -> IngestionOrchestrator:
    return IngestionOrchestrator(stub_embedder, gateway, max_length=1000)


class TestIngest:
    @pytest.mark.asyncio
    async def test_end_to_end_ingest_then_search(
        self, orchestrator: IngestionOrchestrator, gateway: VectorStoreGateway
    ) -> None:
        text = _document()
        assert 2400 <= len(text) <= 2600

        result = await orchestrator.ingest(11, text)

        assert result.status is IngestionStatus.COMPLETED
        assert result.stored_count == 3
        assert result.total_chunks == 3

        hits = await gateway.search(unit_vector(0), limit=3, file_id=11)
        assert len(hits) == 3
        assert sorted(h.chunk_index for h in hits) == [0, 1, 2]
        assert all(h.score == pytest.approx(1.0) for h in hits)
        assert all(h.file_id == 11 for h in hits)

    @pytest.mark.asyncio
    async def test_chunks_embedded_sequentially_in_order(
        self, orchestrator: IngestionOrchestrator, stub_embedder: StubEmbedder
    ) -> None:
        await orchestrator.ingest(1, "One. Two. Three.")
        assert stub_embedder.calls == ["One. Two. Three."]

        await IngestionOrchestrator(stub_embedder, orchestrator.gateway, max_length=5).ingest(
            2, "One. Two. Three."
        )
        assert stub_embedder.calls[1:] == ["One.", "Two.", "Three."]

    @pytest.mark.asyncio
    async def test_status_transitions(self, orchestrator: IngestionOrchestrator) -> None:
        seen: list[IngestionStatus] = []
        await orchestrator.ingest(1, "Hello.", on_status=lambda _fid, status: seen.append(status))
        assert seen == [
            IngestionStatus.PENDING,
            IngestionStatus.EMBEDDING,
            IngestionStatus.STORING,
            IngestionStatus.COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_async_status_callback(self, orchestrator: IngestionOrchestrator) -> None:
        seen: list[tuple[int, IngestionStatus]] = []

        async def record(file_id: int, status: IngestionStatus) -> None:
            seen.append((file_id, status))

        await orchestrator.ingest("5", "Hello.", on_status=record)
        assert seen[-1] == (5, IngestionStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_empty_document_completes_with_nothing_stored(
        self, orchestrator: IngestionOrchestrator, fake_store: FakeVectorStore
    ) -> None:
        result = await orchestrator.ingest(1, "")
        assert result.status is IngestionStatus.COMPLETED
        assert result.stored_count == 0
        assert fake_store.upsert_attempts == []

    @pytest.mark.asyncio
    async def test_embedding_failure_aborts_before_storing(
        self, gateway: VectorStoreGateway, fake_store: FakeVectorStore
    ) -> None:
        embedder = StubEmbedder(fail_on="Broken")
        orchestrator = IngestionOrchestrator(embedder, gateway, max_length=10)
        seen: list[IngestionStatus] = []

        with pytest.raises(EmbeddingError) as excinfo:
            await orchestrator.ingest(
                8, "Fine. Also fine. Broken one. Never reached.", on_status=lambda _f, s: seen.append(s)
            )

        assert excinfo.value.file_id == 8
        assert excinfo.value.chunk_index == 2
        assert fake_store.upsert_attempts == []
        assert seen[-1] is IngestionStatus.FAILED

    @pytest.mark.asyncio
    async def test_wrong_embedding_dimension_is_attributed_to_chunk(
        self, gateway: VectorStoreGateway
    ) -> None:
        embedder = StubEmbedder()
        embedder.vectors["Second."] = [1.0, 0.0]
        orchestrator = IngestionOrchestrator(embedder, gateway, max_length=5)

        with pytest.raises(EmbeddingError) as excinfo:
            await orchestrator.ingest(1, "First. Second.")
        assert excinfo.value.chunk_index == 1

    @pytest.mark.asyncio
    async def test_partial_store_returns_resumable_result(
        self, stub_embedder: StubEmbedder, fake_store: FakeVectorStore, make_gateway
    ) -> None:
        gateway = make_gateway(fake_store, batch_size=2)
        orchestrator = IngestionOrchestrator(stub_embedder, gateway, max_length=5)
        fake_store.upsert_errors = [None, PermanentStoreError("400")]
        seen: list[IngestionStatus] = []

        result = await orchestrator.ingest(
            3, "A1. B2. C3. D4. E5.", on_status=lambda _f, s: seen.append(s)
        )

        assert result.status is IngestionStatus.PARTIALLY_STORED
        assert result.stored_count == 2
        assert result.total_chunks == 5
        assert result.resume_from == 2
        assert not result.complete
        assert "400" in result.error
        assert seen[-1] is IngestionStatus.PARTIALLY_STORED

        # Resume stores only the remainder with their original indexes.
        fake_store.upsert_errors = []
        resumed = await orchestrator.ingest(3, "A1. B2. C3. D4. E5.", resume_from=result.resume_from)
        assert resumed.status is IngestionStatus.COMPLETED
        assert resumed.stored_count == 3
        assert resumed.resume_from == 5
        indexes = sorted(p.payload.chunk_index for p in fake_store.points.values())
        assert indexes == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_first_batch_failure_raises(
        self, orchestrator: IngestionOrchestrator, fake_store: FakeVectorStore
    ) -> None:
        fake_store.upsert_errors = [TransientStoreError("503")] * 3
        seen: list[IngestionStatus] = []

        with pytest.raises(BatchUpsertError) as excinfo:
            await orchestrator.ingest(1, "Hello.", on_status=lambda _f, s: seen.append(s))

        assert excinfo.value.stored_count == 0
        assert seen[-1] is IngestionStatus.FAILED

    @pytest.mark.asyncio
    async def test_bootstrap_failure_raises_before_writing(
        self, orchestrator: IngestionOrchestrator, fake_store: FakeVectorStore
    ) -> None:
        fake_store.list_error = TransientStoreError("connection refused")
        with pytest.raises(CollectionBootstrapError):
            await orchestrator.ingest(1, "Hello.")
        assert fake_store.upsert_attempts == []

    @pytest.mark.asyncio
    async def test_negative_resume_from_rejected(self, orchestrator: IngestionOrchestrator) -> None:
        with pytest.raises(ValueError, match="resume_from"):
            await orchestrator.ingest(1, "Hello.", resume_from=-1)
