"""Similarity search over indexed podcast chunks.

Two retrieval strategies share one interface: :class:`PrimaryStrategy` ranks
chunks with the ``match_chunks`` SQL function, and :class:`FallbackStrategy`
reads the user's most recent chunks without ranking. :class:`SimilaritySearch`
embeds the query, tries the primary strategy, and falls back when it errors or
finds nothing. Both strategies filter on the owning user.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any

from src.errors import InvalidInputError
from src.ingestion.embeddings import EmbeddingBatcher
from src.ingestion.storage import PodcastStore
from src.pipeline_config import SearchConfig

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown"


@dataclass(frozen=True)
class SearchResult:
    """A retrieved chunk.

    ``similarity`` is a cosine-similarity score for primary results. Fallback
    results carry a constant placeholder and ``is_fallback=True``.
    """

    chunk_id: str
    podcast_id: str
    podcast_title: str
    content: str
    start_time: float | None
    end_time: float | None
    similarity: float
    is_fallback: bool = False


@dataclass(frozen=True)
class SearchRequest:
    """An embedded query plus its scope, handed to each strategy."""

    embedding: list[float]
    user_id: str
    limit: int
    similarity_threshold: float
    podcast_id: str | None = None


class SearchStrategy(ABC):
    name: str = "base"

    @abstractmethod
    async def retrieve(self, request: SearchRequest) -> list[SearchResult]:
        raise NotImplementedError


class PrimaryStrategy(SearchStrategy):
    """Server-side nearest-neighbour ranking via ``match_chunks``."""

    name = "primary"

    def __init__(self, store: PodcastStore) -> None:
        self._store = store

    async def retrieve(self, request: SearchRequest) -> list[SearchResult]:
        rows = await self._store.match_chunks(
            request.embedding,
            user_id=request.user_id,
            match_count=request.limit,
            match_threshold=request.similarity_threshold,
            podcast_id=request.podcast_id,
        )
        results = []
        for row in rows:
            # A row without a score ranks as 0.0.
            similarity = float(row.get("similarity") or 0.0)
            if similarity >= request.similarity_threshold:
                results.append(_row_to_result(row, similarity))
        results.sort(key=lambda r: r.similarity, reverse=True)
        return await self._with_titles(results[: request.limit])

    async def _with_titles(self, results: list[SearchResult]) -> list[SearchResult]:
        """Fill in podcast titles the SQL function did not return."""
        missing = list({r.podcast_id for r in results if not r.podcast_title})
        if not missing:
            return results
        titles = await self._store.get_podcast_titles(missing)
        return [
            r if r.podcast_title else replace(r, podcast_title=titles.get(r.podcast_id, UNKNOWN_TITLE))
            for r in results
        ]


class FallbackStrategy(SearchStrategy):
    """Unranked read of the user's most recent chunks.

    Fetches up to ``2 * limit`` rows and keeps ``limit``. Every result gets
    ``placeholder_similarity``; it is not a real score.
    """

    name = "fallback"

    def __init__(self, store: PodcastStore, placeholder_similarity: float = 0.8) -> None:
        self._store = store
        self._placeholder_similarity = placeholder_similarity

    async def retrieve(self, request: SearchRequest) -> list[SearchResult]:
        rows = await self._store.list_user_chunks(
            request.user_id,
            limit=request.limit * 2,
            podcast_id=request.podcast_id,
        )
        return [
            _row_to_result(row, self._placeholder_similarity, is_fallback=True)
            for row in rows[: request.limit]
        ]


def _row_to_result(row: dict[str, Any], similarity: float, is_fallback: bool = False) -> SearchResult:
    # Joined rows from PostgREST come back as either an object or a list.
    podcast = row.get("podcasts")
    if isinstance(podcast, list):
        podcast = podcast[0] if podcast else None
    title = row.get("podcast_title") or (podcast or {}).get("title")
    if is_fallback and not title:
        title = UNKNOWN_TITLE

    return SearchResult(
        chunk_id=str(row.get("chunk_id") or row["id"]),
        podcast_id=str(row["podcast_id"]),
        podcast_title=title or "",
        content=row["content"],
        start_time=row.get("start_time"),
        end_time=row.get("end_time"),
        similarity=similarity,
        is_fallback=is_fallback,
    )


class SimilaritySearch:
    """Embed a query and retrieve the user's most similar chunks.

    Example:
        >>> search = SimilaritySearch(batcher, PrimaryStrategy(store), FallbackStrategy(store))
        >>> results = await search.search("What did they say about AI?", user_id)
    """

    def __init__(
        self,
        embedder: EmbeddingBatcher,
        primary: SearchStrategy,
        fallback: SearchStrategy,
        config: SearchConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._primary = primary
        self._fallback = fallback
        self._config = config or SearchConfig()

    @property
    def config(self) -> SearchConfig:
        return self._config

    async def search(
        self,
        query: str,
        user_id: str,
        podcast_id: str | None = None,
        limit: int | None = None,
        similarity_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Return up to *limit* chunks owned by *user_id*, best first.

        Args:
            query: Natural-language query.
            user_id: Owner scope; always applied.
            podcast_id: Optional single-podcast scope.
            limit: Maximum results (default from config, 5).
            similarity_threshold: Minimum similarity for ranked results
                (default 0.7; chat callers pass 0.5).

        Raises:
            InvalidInputError: Empty query, blank user id, or non-positive limit.
            EmbeddingError: The query could not be embedded.
            PersistenceError: The fallback read failed as well.
        """
        if not query or not query.strip():
            raise InvalidInputError("Query cannot be empty")
        if not user_id or not user_id.strip():
            raise InvalidInputError("Missing user id")
        limit = self._config.limit if limit is None else limit
        if limit < 1:
            raise InvalidInputError("limit must be at least 1")
        threshold = (
            self._config.similarity_threshold
            if similarity_threshold is None
            else similarity_threshold
        )

        embedding = await self._embedder.embed_one(query)
        request = SearchRequest(
            embedding=embedding,
            user_id=user_id,
            limit=limit,
            similarity_threshold=threshold,
            podcast_id=podcast_id,
        )

        try:
            results = await self._primary.retrieve(request)
        except Exception as exc:
            logger.warning("%s search failed, using %s: %s", self._primary.name, self._fallback.name, exc)
            results = []

        if results:
            return results

        logger.info("No %s results for user %s; falling back", self._primary.name, user_id)
        return await self._fallback.retrieve(request)
