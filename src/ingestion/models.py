"""Data models for the indexing pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TranscriptWord:
    """A single spoken word with its timing in seconds."""

    text: str
    start: float
    end: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TranscriptWord:
        return cls(text=str(data["text"]), start=float(data["start"]), end=float(data["end"]))


@dataclass(frozen=True)
class Chunk:
    """A chunk of transcript text ready for embedding and storage."""

    content: str
    start_time: float | None = None
    end_time: float | None = None
    chunk_index: int = 0


@dataclass(frozen=True)
class ChunkStats:
    """Summary statistics over a podcast's chunk set."""

    total_chunks: int
    avg_words_per_chunk: int
    min_words: int
    max_words: int
    has_timestamps: bool


@dataclass
class TranscriptUtterance:
    """Speaker-separated segment returned by the transcription provider."""

    speaker: str | None
    text: str
    start: float
    end: float


@dataclass
class TranscriptResult:
    """Complete transcription result. Times are in seconds."""

    text: str
    transcript_id: str
    words: list[TranscriptWord] = field(default_factory=list)
    utterances: list[TranscriptUtterance] = field(default_factory=list)
    summary: str | None = None
    audio_duration: float | None = None
