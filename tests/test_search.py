"""Tests for the search strategies and the SimilaritySearch coordinator."""

from __future__ import annotations

import asyncio

import pytest
from postgrest.exceptions import APIError

from src.errors import EmbeddingError, InvalidInputError, PersistenceError
from src.ingestion.embeddings import EmbeddingBatcher
from src.pipeline_config import SearchConfig
from src.retrieval.search import (
    FallbackStrategy,
    PrimaryStrategy,
    SearchRequest,
    SimilaritySearch,
)
from tests.helpers import FAST_EMBEDDING_CONFIG, FakeEmbeddingsClient, FakeStore

ALICE = "user-alice"
BOB = "user-bob"
ML_SENTENCE = "Machine learning models need lots of training data."


@pytest.fixture
def library(store: FakeStore) -> FakeStore:
    """Two users with overlapping content in separate podcasts."""
    store.add_podcast("alice-1", ALICE, title="Alice Talks")
    store.add_podcast("alice-2", ALICE, title="Alice Cooks")
    store.add_podcast("bob-1", BOB, title="Bob Talks")
    store.add_chunk("alice-1", ML_SENTENCE, 0)
    store.add_chunk("alice-1", "Neural networks learn representations.", 1)
    store.add_chunk("alice-2", "Banana bread needs ripe bananas.", 0)
    store.add_chunk("bob-1", ML_SENTENCE, 0)
    store.add_chunk("bob-1", "Bob's secret plans for world domination.", 1)
    return store


def _owner_of(store: FakeStore, podcast_id: str) -> str:
    return store.podcasts[podcast_id]["user_id"]


class TestPrimarySearch:
    def test_ranked_best_first(self, library: FakeStore, search: SimilaritySearch) -> None:
        results = asyncio.run(search.search(ML_SENTENCE, ALICE, similarity_threshold=0.0))

        assert len(results) == 3
        assert results[0].content == ML_SENTENCE
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].podcast_title == "Alice Talks"
        similarities = [r.similarity for r in results]
        assert similarities == sorted(similarities, reverse=True)
        assert not any(r.is_fallback for r in results)

    def test_threshold_filters(self, library: FakeStore, search: SimilaritySearch) -> None:
        results = asyncio.run(search.search(ML_SENTENCE, ALICE, similarity_threshold=0.999))
        assert [r.content for r in results] == [ML_SENTENCE]
        assert not results[0].is_fallback

    def test_limit(self, library: FakeStore, search: SimilaritySearch) -> None:
        results = asyncio.run(search.search("data", ALICE, limit=1, similarity_threshold=0.0))
        assert len(results) == 1

    def test_podcast_scope(self, library: FakeStore, search: SimilaritySearch) -> None:
        results = asyncio.run(
            search.search("bananas", ALICE, podcast_id="alice-2", similarity_threshold=0.0)
        )
        assert {r.podcast_id for r in results} == {"alice-2"}

    def test_missing_titles_are_looked_up(self, store: FakeStore) -> None:
        store.add_podcast("pod-1", ALICE, title="Looked Up")
        store.match_rows = [
            {
                "chunk_id": "c1",
                "podcast_id": "pod-1",
                "content": "hello",
                "start_time": None,
                "end_time": None,
                "similarity": 0.91,
            },
            {
                "chunk_id": "c2",
                "podcast_id": "gone",
                "content": "bye",
                "start_time": 1.0,
                "end_time": 2.0,
                "similarity": 0.95,
            },
            {
                "chunk_id": "c3",
                "podcast_id": "pod-1",
                "content": "too far",
                "start_time": None,
                "end_time": None,
                "similarity": 0.2,
            },
        ]
        request = SearchRequest(embedding=[0.1], user_id=ALICE, limit=5, similarity_threshold=0.7)

        results = asyncio.run(PrimaryStrategy(store).retrieve(request))  # type: ignore[arg-type]

        assert [r.chunk_id for r in results] == ["c2", "c1"]
        assert [r.podcast_title for r in results] == ["Unknown", "Looked Up"]

    def test_row_without_score_at_zero_threshold(self, store: FakeStore, search: SimilaritySearch) -> None:
        store.add_podcast("pod-1", ALICE, title="Show")
        store.add_chunk("pod-1", "An older chunk the fallback would return.")
        store.match_rows = [
            {"chunk_id": "c1", "podcast_id": "pod-1", "podcast_title": "Show", "content": "hello"}
        ]

        results = asyncio.run(search.search("hello", ALICE, similarity_threshold=0.0))

        assert [r.chunk_id for r in results] == ["c1"]
        assert results[0].similarity == 0.0
        assert results[0].is_fallback is False


class TestOwnershipIsolation:
    @pytest.mark.parametrize("primary_fails", [False, True])
    def test_never_returns_other_users_chunks(
        self, library: FakeStore, search: SimilaritySearch, primary_fails: bool
    ) -> None:
        if primary_fails:
            library.match_error = APIError({"message": "function match_chunks does not exist"})

        for user in (ALICE, BOB):
            results = asyncio.run(
                search.search("machine learning", user, limit=10, similarity_threshold=0.0)
            )
            assert results
            assert all(_owner_of(library, r.podcast_id) == user for r in results)

    def test_other_users_podcast_scope_is_empty(self, library: FakeStore, search: SimilaritySearch) -> None:
        results = asyncio.run(
            search.search("machine learning", ALICE, podcast_id="bob-1", similarity_threshold=0.0)
        )
        assert results == []


class TestFallback:
    def test_primary_error_falls_back(self, library: FakeStore, search: SimilaritySearch) -> None:
        library.match_error = APIError({"message": "timeout"})

        results = asyncio.run(search.search("anything at all", ALICE, limit=2))

        assert len(results) == 2
        assert all(r.is_fallback for r in results)
        assert all(r.similarity == 0.8 for r in results)

    def test_no_primary_results_falls_back(self, library: FakeStore, search: SimilaritySearch) -> None:
        # Nothing clears a threshold of 1.01, so the primary path is empty.
        results = asyncio.run(search.search("bananas", ALICE, similarity_threshold=1.01))

        assert len(results) == 3
        assert all(r.is_fallback for r in results)

    def test_fallback_is_most_recent_first(self, library: FakeStore) -> None:
        request = SearchRequest(embedding=[0.0], user_id=ALICE, limit=5, similarity_threshold=0.7)
        results = asyncio.run(FallbackStrategy(library).retrieve(request))  # type: ignore[arg-type]
        assert [r.content for r in results][0] == "Banana bread needs ripe bananas."
        assert results[0].podcast_title == "Alice Cooks"

    def test_fallback_placeholder_configurable(self, library: FakeStore) -> None:
        request = SearchRequest(embedding=[0.0], user_id=BOB, limit=1, similarity_threshold=0.7)
        results = asyncio.run(FallbackStrategy(library, 0.5).retrieve(request))  # type: ignore[arg-type]
        assert [r.similarity for r in results] == [0.5]

    def test_fallback_failure_propagates(self, library: FakeStore, search: SimilaritySearch) -> None:
        library.match_error = APIError({"message": "timeout"})
        library.list_error = PersistenceError("Failed to read chunks for user: down")

        with pytest.raises(PersistenceError):
            asyncio.run(search.search("anything", ALICE))

    def test_no_chunks_at_all(self, store: FakeStore, search: SimilaritySearch) -> None:
        store.add_podcast("empty", ALICE)
        assert asyncio.run(search.search("anything", ALICE)) == []


class TestSearchValidation:
    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query(
        self, search: SimilaritySearch, embeddings_client: FakeEmbeddingsClient, query: str
    ) -> None:
        with pytest.raises(InvalidInputError):
            asyncio.run(search.search(query, ALICE))
        assert embeddings_client.calls == []

    def test_blank_user(self, search: SimilaritySearch) -> None:
        with pytest.raises(InvalidInputError):
            asyncio.run(search.search("query", ""))

    def test_non_positive_limit(self, search: SimilaritySearch) -> None:
        with pytest.raises(InvalidInputError):
            asyncio.run(search.search("query", ALICE, limit=0))

    def test_embedding_failure_is_not_masked(self, library: FakeStore) -> None:
        client = FakeEmbeddingsClient(errors=[ValueError("invalid api key")])
        embedder = EmbeddingBatcher(client, FAST_EMBEDDING_CONFIG)  # type: ignore[arg-type]
        search = SimilaritySearch(embedder, PrimaryStrategy(library), FallbackStrategy(library))  # type: ignore[arg-type]

        with pytest.raises(EmbeddingError):
            asyncio.run(search.search("query", ALICE))

    def test_config_defaults(self, library: FakeStore, search: SimilaritySearch) -> None:
        assert search.config == SearchConfig()
        # Default limit of 5 caps fallback results too.
        library.match_error = APIError({"message": "down"})
        for i in range(10):
            library.add_chunk("alice-1", f"Extra chunk {i}.", i + 2)
        assert len(asyncio.run(search.search("anything", ALICE))) == 5
