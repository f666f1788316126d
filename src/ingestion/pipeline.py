"""Indexing pipeline: normalize -> chunk -> embed -> store."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from src.errors import (
    InvalidInputError,
    InvalidStatusTransitionError,
    NothingToIndexError,
    OwnershipError,
    PodcastNotFoundError,
)
from src.ingestion.chunking import chunk_transcript
from src.ingestion.embeddings import EmbeddingBatcher
from src.ingestion.models import Chunk, TranscriptWord
from src.ingestion.storage import PodcastStore
from src.pipeline_config import ChunkingConfig
from src.retry import check_deadline
from src.status import INDEXABLE_STATUSES, PodcastStatus, parse_status, validate_transition

logger = logging.getLogger(__name__)


def words_from_rows(rows: Sequence[dict[str, Any]] | None) -> list[TranscriptWord] | None:
    """Build TranscriptWords from stored JSON rows (``{text, start, end}``)."""
    if not rows:
        return None
    return [TranscriptWord.from_dict(row) for row in rows]


class IndexWriter:
    """Delete-then-rebuild indexing of a single podcast's chunk set.

    Steps run sequentially and are not resumable: a failure part-way leaves
    whatever batches were already written, and the remedy is to call
    :meth:`reindex` again, which starts by deleting every chunk. Concurrent
    re-indexes of the same podcast must be serialized by the caller.
    """

    def __init__(
        self,
        store: PodcastStore,
        embedder: EmbeddingBatcher,
        chunking: ChunkingConfig | None = None,
        embed_batch_size: int = 20,
        insert_batch_size: int = 100,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._chunking = chunking or ChunkingConfig()
        self._embed_batch_size = embed_batch_size
        self._insert_batch_size = insert_batch_size

    async def load_owned_podcast(self, podcast_id: str, user_id: str) -> dict[str, Any]:
        """Fetch a podcast and verify *user_id* owns it.

        Raises:
            InvalidInputError: Blank podcast or user id.
            PodcastNotFoundError: No such podcast.
            OwnershipError: The podcast belongs to someone else.
        """
        if not podcast_id or not podcast_id.strip():
            raise InvalidInputError("Missing podcast id")
        if not user_id or not user_id.strip():
            raise InvalidInputError("Missing user id")

        podcast = await self._store.get_podcast(podcast_id)
        if podcast is None:
            raise PodcastNotFoundError(f"Podcast {podcast_id} not found")
        if podcast.get("user_id") != user_id:
            raise OwnershipError("Unauthorized: You do not own this podcast")
        return podcast

    async def reindex(
        self,
        podcast_id: str,
        user_id: str,
        transcript: str | None = None,
        words: Sequence[TranscriptWord] | None = None,
        deadline: float | None = None,
    ) -> int:
        """Rebuild every chunk and embedding for a podcast.

        Args:
            podcast_id: Podcast to index.
            user_id: Caller; must own the podcast.
            transcript: Transcript text. Defaults to the stored transcript.
            words: Word timestamps. Defaults to the stored word timeline.
            deadline: Optional absolute event-loop time for the whole run.

        Returns:
            Number of chunks written.

        Raises:
            OwnershipError, PodcastNotFoundError, NothingToIndexError,
            InvalidStatusTransitionError, EmbeddingError, PersistenceError,
            DeadlineExceededError.
        """
        podcast = await self.load_owned_podcast(podcast_id, user_id)

        text = transcript if transcript is not None else podcast.get("transcript")
        if not text:
            raise NothingToIndexError("Podcast has no transcript to index")
        if words is None:
            words = words_from_rows(podcast.get("transcript_words"))

        current = parse_status(podcast.get("status"), PodcastStatus.READY)
        if current not in INDEXABLE_STATUSES:
            raise InvalidStatusTransitionError(current, PodcastStatus.READY)

        logger.info("Reindexing podcast %s (%s)", podcast.get("title"), podcast_id)

        await self._store.delete_chunks(podcast_id)

        chunks = chunk_transcript(text, words, self._chunking)
        if not chunks:
            logger.info("Podcast %s has no indexable text after normalization", podcast_id)
            await self._mark_ready(podcast_id, current)
            return 0

        rows = await self._embed_chunks(podcast_id, chunks, deadline)
        await self._persist(rows, deadline)
        await self._mark_ready(podcast_id, current)

        logger.info("Indexed podcast %s with %d chunks", podcast_id, len(chunks))
        return len(chunks)

    async def _embed_chunks(
        self, podcast_id: str, chunks: list[Chunk], deadline: float | None
    ) -> list[dict[str, Any]]:
        rows: list[dict[str, Any]] = []
        for i in range(0, len(chunks), self._embed_batch_size):
            batch = chunks[i : i + self._embed_batch_size]
            check_deadline(deadline, f"embedding chunks {i}-{i + len(batch) - 1}")
            embeddings = await self._embedder.embed_batch([c.content for c in batch], deadline)
            for chunk, embedding in zip(batch, embeddings, strict=True):
                rows.append(
                    {
                        "podcast_id": podcast_id,
                        "content": chunk.content,
                        "start_time": chunk.start_time,
                        "end_time": chunk.end_time,
                        "chunk_index": chunk.chunk_index,
                        "embedding": embedding or None,
                    }
                )
        return rows

    async def _persist(self, rows: list[dict[str, Any]], deadline: float | None) -> None:
        for i in range(0, len(rows), self._insert_batch_size):
            check_deadline(deadline, f"inserting chunk rows from {i}")
            await self._store.insert_chunks(rows[i : i + self._insert_batch_size])

    async def _mark_ready(self, podcast_id: str, current: PodcastStatus) -> None:
        status = validate_transition(current, PodcastStatus.READY)
        await self._store.set_status(podcast_id, status, error_message=None)


async def run_indexing_job(
    writer: IndexWriter,
    store: PodcastStore,
    podcast_id: str,
    user_id: str,
    transcript: str | None = None,
    words: Sequence[TranscriptWord] | None = None,
    deadline: float | None = None,
) -> int:
    """Move a podcast into ``processing``, reindex it, and record failures.

    This is the status-owning wrapper used by the API and scripts. Any
    failure after the ownership check sets the podcast to ``error`` with the
    exception message and is then re-raised.
    """
    podcast = await writer.load_owned_podcast(podcast_id, user_id)
    current = parse_status(podcast.get("status"), PodcastStatus.PROCESSING)
    if current is not PodcastStatus.PROCESSING:
        await store.set_status(podcast_id, validate_transition(current, PodcastStatus.PROCESSING))

    try:
        return await writer.reindex(podcast_id, user_id, transcript, words, deadline)
    except Exception as exc:
        logger.exception("Indexing failed for podcast %s", podcast_id)
        try:
            await store.set_status(podcast_id, PodcastStatus.ERROR, error_message=str(exc))
        except Exception:
            logger.exception("Failed to record error status for podcast %s", podcast_id)
        raise
