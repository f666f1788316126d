"""In-memory stand-ins for Supabase and the OpenAI embeddings API."""

from __future__ import annotations

import copy
import math
from types import SimpleNamespace
from typing import Any

from src.errors import PersistenceError
from src.ingestion.models import TranscriptWord
from src.pipeline_config import EmbeddingConfig
from src.status import PodcastStatus

# No real waiting between batches or retries in tests.
FAST_EMBEDDING_CONFIG = EmbeddingConfig(batch_delay=0.0, base_retry_delay=0.0)

_VECTOR_KEYS = "abcdefghijklmnopqrstuvwxyz"


def fake_vector(text: str) -> list[float]:
    """Deterministic letter-frequency vector, so cosine similarity is meaningful."""
    lowered = text.lower()
    return [float(lowered.count(c)) for c in _VECTOR_KEYS] + [1.0]


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


def make_sentences(count: int, words_per_sentence: int = 25) -> list[str]:
    """Sentences whose words are unique tokens like ``w3x0``."""
    return [
        " ".join(f"w{i}x{j}" for j in range(words_per_sentence)) + "."
        for i in range(count)
    ]


def make_transcript(count: int, words_per_sentence: int = 25) -> str:
    return " ".join(make_sentences(count, words_per_sentence))


def make_words(transcript: str, step: float = 0.5) -> list[TranscriptWord]:
    """One timed word per transcript token, ``step`` seconds apart."""
    return [
        TranscriptWord(text=token.rstrip(".!?"), start=i * step, end=i * step + step * 0.8)
        for i, token in enumerate(transcript.split())
    ]


class FakeEmbeddingsClient:
    """Mimics ``AsyncOpenAI`` for ``client.embeddings.create``.

    ``errors`` is a queue of exceptions raised by successive calls before
    real responses are returned.
    """

    def __init__(self, errors: list[Exception] | None = None) -> None:
        self.calls: list[list[str]] = []
        self.errors = list(errors or [])
        self.embeddings = SimpleNamespace(create=self._create)

    async def _create(self, model: str, input: list[str]) -> SimpleNamespace:
        self.calls.append(list(input))
        if self.errors:
            raise self.errors.pop(0)
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=fake_vector(text), index=i) for i, text in enumerate(input)]
        )


class FakeStore:
    """Dict-backed replacement for :class:`src.ingestion.storage.PodcastStore`."""

    def __init__(self) -> None:
        self.podcasts: dict[str, dict[str, Any]] = {}
        self.chunks: list[dict[str, Any]] = []
        self.status_history: list[tuple[str, str, str | None]] = []
        self.insert_calls = 0
        self.fail_insert_on_call: int | None = None
        self.match_error: Exception | None = None
        self.match_rows: list[dict[str, Any]] | None = None
        self.list_error: Exception | None = None
        self._next_chunk_id = 0

    def add_podcast(
        self,
        podcast_id: str,
        user_id: str,
        title: str = "Episode",
        status: str = PodcastStatus.PROCESSING,
        transcript: str | None = None,
        transcript_words: list[dict[str, Any]] | None = None,
        audio_url: str = "https://cdn.example.com/episode.mp3",
    ) -> None:
        self.podcasts[podcast_id] = {
            "id": podcast_id,
            "user_id": user_id,
            "title": title,
            "status": str(status),
            "audio_url": audio_url,
            "transcript": transcript,
            "transcript_words": transcript_words,
            "error_message": None,
        }

    def add_chunk(self, podcast_id: str, content: str, chunk_index: int = 0, embed: bool = True) -> str:
        self._next_chunk_id += 1
        chunk_id = f"chunk-{self._next_chunk_id}"
        self.chunks.append(
            {
                "id": chunk_id,
                "podcast_id": podcast_id,
                "content": content,
                "start_time": float(chunk_index * 30),
                "end_time": float(chunk_index * 30 + 29),
                "chunk_index": chunk_index,
                "embedding": fake_vector(content) if embed else None,
            }
        )
        return chunk_id

    def chunks_for(self, podcast_id: str) -> list[dict[str, Any]]:
        return [c for c in self.chunks if c["podcast_id"] == podcast_id]

    # -- podcasts -----------------------------------------------------------

    async def get_podcast(self, podcast_id: str) -> dict[str, Any] | None:
        podcast = self.podcasts.get(podcast_id)
        return copy.deepcopy(podcast) if podcast else None

    async def update_podcast(self, podcast_id: str, values: dict[str, Any]) -> None:
        self.podcasts[podcast_id].update(values)

    async def set_status(
        self, podcast_id: str, status: PodcastStatus, error_message: str | None = None
    ) -> None:
        self.status_history.append((podcast_id, status.value, error_message))
        await self.update_podcast(podcast_id, {"status": status.value, "error_message": error_message})

    async def list_podcasts_by_status(self, statuses: list[PodcastStatus]) -> list[dict[str, Any]]:
        wanted = {s.value for s in statuses}
        return [copy.deepcopy(p) for p in self.podcasts.values() if p["status"] in wanted]

    async def get_podcast_titles(self, podcast_ids: list[str]) -> dict[str, str]:
        return {pid: self.podcasts[pid]["title"] for pid in podcast_ids if pid in self.podcasts}

    # -- chunks -------------------------------------------------------------

    async def delete_chunks(self, podcast_id: str) -> None:
        self.chunks = [c for c in self.chunks if c["podcast_id"] != podcast_id]

    async def insert_chunks(self, rows: list[dict[str, Any]]) -> None:
        self.insert_calls += 1
        if self.fail_insert_on_call == self.insert_calls:
            raise PersistenceError("Failed to insert chunks: connection reset")
        for row in rows:
            self._next_chunk_id += 1
            self.chunks.append({"id": f"chunk-{self._next_chunk_id}", **row})

    async def count_chunks(self, podcast_id: str) -> int:
        return len(self.chunks_for(podcast_id))

    def _owned_chunks(self, user_id: str, podcast_id: str | None) -> list[dict[str, Any]]:
        return [
            c
            for c in self.chunks
            if self.podcasts[c["podcast_id"]]["user_id"] == user_id
            and (podcast_id is None or c["podcast_id"] == podcast_id)
        ]

    async def match_chunks(
        self,
        query_embedding: list[float],
        user_id: str,
        match_count: int,
        match_threshold: float,
        podcast_id: str | None = None,
    ) -> list[dict[str, Any]]:
        if self.match_error is not None:
            raise self.match_error
        if self.match_rows is not None:
            return copy.deepcopy(self.match_rows)

        rows = []
        for c in self._owned_chunks(user_id, podcast_id):
            if not c.get("embedding"):
                continue
            similarity = cosine(query_embedding, c["embedding"])
            if similarity < match_threshold:
                continue
            rows.append(
                {
                    "chunk_id": c["id"],
                    "podcast_id": c["podcast_id"],
                    "podcast_title": self.podcasts[c["podcast_id"]]["title"],
                    "content": c["content"],
                    "start_time": c["start_time"],
                    "end_time": c["end_time"],
                    "chunk_index": c["chunk_index"],
                    "similarity": similarity,
                }
            )
        rows.sort(key=lambda r: r["similarity"], reverse=True)
        return rows[:match_count]

    async def list_user_chunks(
        self, user_id: str, limit: int, podcast_id: str | None = None
    ) -> list[dict[str, Any]]:
        if self.list_error is not None:
            raise self.list_error
        owned = list(reversed(self._owned_chunks(user_id, podcast_id)))
        return [
            {
                "id": c["id"],
                "podcast_id": c["podcast_id"],
                "content": c["content"],
                "start_time": c["start_time"],
                "end_time": c["end_time"],
                "chunk_index": c["chunk_index"],
                "podcasts": {
                    "title": self.podcasts[c["podcast_id"]]["title"],
                    "user_id": user_id,
                },
            }
            for c in owned[:limit]
        ]
