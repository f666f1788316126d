from __future__ import annotations

import pytest

from src.ingestion.embeddings import EmbeddingBatcher
from src.ingestion.pipeline import IndexWriter
from src.retrieval.search import FallbackStrategy, PrimaryStrategy, SimilaritySearch
from tests.helpers import FAST_EMBEDDING_CONFIG, FakeEmbeddingsClient, FakeStore


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def embeddings_client() -> FakeEmbeddingsClient:
    return FakeEmbeddingsClient()


@pytest.fixture
def embedder(embeddings_client: FakeEmbeddingsClient) -> EmbeddingBatcher:
    return EmbeddingBatcher(embeddings_client, FAST_EMBEDDING_CONFIG)  # type: ignore[arg-type]


@pytest.fixture
def writer(store: FakeStore, embedder: EmbeddingBatcher) -> IndexWriter:
    return IndexWriter(store, embedder)  # type: ignore[arg-type]


@pytest.fixture
def search(store: FakeStore, embedder: EmbeddingBatcher) -> SimilaritySearch:
    return SimilaritySearch(
        embedder,
        PrimaryStrategy(store),  # type: ignore[arg-type]
        FallbackStrategy(store),  # type: ignore[arg-type]
    )
