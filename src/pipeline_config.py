"""Pipeline configuration: chunking, embedding, and search parameter dataclasses."""

from __future__ import annotations

from dataclasses import dataclass

from src.config import Settings


@dataclass(frozen=True)
class ChunkingConfig:
    """Word-count bounds for sentence chunking.

    A chunk is closed once it reaches ``target_size`` words, or on the last
    sentence once it has ``min_size``. Transcripts of at most ``max_size``
    words become a single chunk.
    """

    target_size: int = 600
    min_size: int = 400
    max_size: int = 800
    overlap_sentences: int = 3


@dataclass(frozen=True)
class EmbeddingConfig:
    """Provider batching and retry limits for the embedding batcher."""

    model: str = "text-embedding-3-small"
    batch_size: int = 100
    batch_delay: float = 0.1
    max_retries: int = 3
    base_retry_delay: float = 1.0

    @classmethod
    def from_settings(cls, settings: Settings) -> EmbeddingConfig:
        return cls(
            model=settings.embedding_model,
            batch_size=settings.embedding_batch_size,
            batch_delay=settings.embedding_batch_delay,
            max_retries=settings.max_retries,
            base_retry_delay=settings.base_retry_delay,
        )


@dataclass(frozen=True)
class SearchConfig:
    """Defaults for similarity search."""

    limit: int = 5
    similarity_threshold: float = 0.7
    chat_similarity_threshold: float = 0.5
    fallback_similarity: float = 0.8

    @classmethod
    def from_settings(cls, settings: Settings) -> SearchConfig:
        return cls(
            limit=settings.search_limit,
            similarity_threshold=settings.similarity_threshold,
            chat_similarity_threshold=settings.chat_similarity_threshold,
            fallback_similarity=settings.fallback_similarity,
        )
