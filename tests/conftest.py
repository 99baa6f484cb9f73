"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from fakes import DIM, NO_WAIT, FakeVectorStore, StubEmbedder
from study_retrieval.retrieval.base import VectorStoreBase
from study_retrieval.retrieval.gateway import VectorStoreGateway


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


# ── Fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def stub_embedder() -> StubEmbedder:
    return StubEmbedder()


@pytest.fixture()
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture()
def make_gateway():
    """Factory for gateways over a given store with test-friendly defaults."""

    def _make(store: VectorStoreBase, **kwargs: Any) -> VectorStoreGateway:
        kwargs.setdefault("vector_size", DIM)
        kwargs.setdefault("retry_policy", NO_WAIT)
        kwargs.setdefault("timeout", 5.0)
        return VectorStoreGateway(store, **kwargs)

    return _make


@pytest.fixture()
def gateway(fake_store: FakeVectorStore, make_gateway) -> VectorStoreGateway:
    return make_gateway(fake_store)
