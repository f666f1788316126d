"""Sentence-bounded, overlapping chunking of podcast transcripts."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from src.ingestion.models import Chunk, ChunkStats, TranscriptWord
from src.ingestion.normalizer import normalize_text
from src.pipeline_config import ChunkingConfig

DEFAULT_CONFIG = ChunkingConfig()

_SENTENCE_END_RE = re.compile(r"[.!?]+\s+")
_NON_WORD_RE = re.compile(r"[\W_]+")

# Words to step back from the estimated position before scanning for a match.
_TIMESTAMP_LOOKBACK = 10


def count_words(text: str) -> int:
    """Number of whitespace-separated words in *text*."""
    return len(text.split())


def split_into_sentences(text: str) -> list[str]:
    """Split on ``.``, ``!`` or ``?`` followed by whitespace.

    Terminal punctuation consumed by the split is dropped. Text with no
    boundary is returned as a single sentence.
    """
    if not text:
        return []
    sentences = [part.strip() for part in _SENTENCE_END_RE.split(text)]
    sentences = [s for s in sentences if s]
    if not sentences and text.strip():
        return [text.strip()]
    return sentences


def _join_sentences(sentences: Sequence[str]) -> str:
    # The last sentence of a transcript keeps its own punctuation after the
    # split; strip it so every sentence ends with exactly one period.
    return ". ".join(s.rstrip(".!?") or s for s in sentences) + "."


def _clean_word(word: str) -> str:
    return _NON_WORD_RE.sub("", word.lower())


def _sentence_offsets(text: str, sentences: Sequence[str]) -> list[int]:
    """Character offset of each sentence within *text*."""
    offsets: list[int] = []
    cursor = 0
    for sentence in sentences:
        position = text.find(sentence, cursor)
        if position < 0:
            position = cursor
        offsets.append(position)
        cursor = position + len(sentence)
    return offsets


def _find_chunk_timestamps(
    words: Sequence[TranscriptWord],
    chunk_content: str,
    transcript: str,
    char_offset: int,
) -> tuple[float | None, float | None]:
    """Best-effort start/end time for a chunk.

    The first word of the chunk is matched against the word timeline,
    starting a little before the word position estimated from *char_offset*.
    The end is the word ``len(chunk_words) - 1`` positions after the match.
    Repeated words can mis-align; a failed match yields ``(None, None)``.
    """
    if not words:
        return None, None
    chunk_words = chunk_content.split()
    if not chunk_words:
        return None, None

    first_word = _clean_word(chunk_words[0])
    words_before = count_words(transcript[:char_offset])
    search_start = max(0, words_before - _TIMESTAMP_LOOKBACK)

    start_index: int | None = None
    for i in range(search_start, len(words)):
        candidate = _clean_word(words[i].text)
        if candidate == first_word or first_word in candidate:
            start_index = i
            break

    if start_index is None:
        return None, None

    end_index = min(start_index + len(chunk_words) - 1, len(words) - 1)
    return words[start_index].start, words[end_index].end


def chunk_transcript(
    transcript: str,
    words: Sequence[TranscriptWord] | None = None,
    config: ChunkingConfig = DEFAULT_CONFIG,
) -> list[Chunk]:
    """Split a transcript into overlapping, sentence-bounded chunks.

    Transcripts of at most ``config.max_size`` words become one chunk whose
    content is the normalized transcript. Longer ones are accumulated
    sentence by sentence until ``config.target_size`` words (or
    ``config.min_size`` on the last sentence); each chunk after the first is
    prefixed with the previous chunk's last ``config.overlap_sentences``
    sentences. Leftover sentences form a final, possibly shorter, chunk.

    Args:
        transcript: Raw transcript text.
        words: Optional word-level timestamps from the transcription provider.
        config: Word-count bounds.

    Returns:
        Chunks with contiguous ``chunk_index`` values starting at 0. Times are
        ``None`` when no timestamps were supplied or alignment failed.
    """
    cleaned = normalize_text(transcript)
    if not cleaned:
        return []

    sentences = split_into_sentences(cleaned)
    if not sentences:
        return []

    if count_words(cleaned) <= config.max_size:
        start_time, end_time = _find_chunk_timestamps(words or [], cleaned, cleaned, 0)
        return [Chunk(content=cleaned, start_time=start_time, end_time=end_time, chunk_index=0)]

    offsets = _sentence_offsets(cleaned, sentences)
    sentence_words = [count_words(s) for s in sentences]

    chunks: list[Chunk] = []

    def emit(indices: list[int]) -> None:
        content = normalize_text(_join_sentences([sentences[i] for i in indices]))
        start_time, end_time = _find_chunk_timestamps(
            words or [], content, cleaned, offsets[indices[0]]
        )
        chunks.append(
            Chunk(
                content=content,
                start_time=start_time,
                end_time=end_time,
                chunk_index=len(chunks),
            )
        )

    current: list[int] = []
    overlap: list[int] = []
    current_words = 0
    last = len(sentences) - 1

    for i in range(len(sentences)):
        current.append(i)
        current_words += sentence_words[i]

        if current_words >= config.target_size or (
            i == last and current_words >= config.min_size
        ):
            emit(overlap + current)
            overlap = current[-config.overlap_sentences :] if config.overlap_sentences else []
            current = []
            current_words = 0

    if current:
        emit(overlap + current)

    return chunks


def estimate_chunk_count(transcript: str, config: ChunkingConfig = DEFAULT_CONFIG) -> int:
    """Rough number of chunks ``chunk_transcript`` will produce."""
    word_count = count_words(transcript)
    if word_count == 0:
        return 0
    if word_count <= config.max_size:
        return 1
    # Roughly 100 words of every chunk are overlap.
    effective_size = max(1, config.target_size - 100)
    return math.ceil(word_count / effective_size)


def get_chunk_stats(chunks: Sequence[Chunk]) -> ChunkStats:
    """Word-count statistics over a chunk set."""
    if not chunks:
        return ChunkStats(
            total_chunks=0,
            avg_words_per_chunk=0,
            min_words=0,
            max_words=0,
            has_timestamps=False,
        )

    word_counts = [count_words(c.content) for c in chunks]
    return ChunkStats(
        total_chunks=len(chunks),
        avg_words_per_chunk=round(sum(word_counts) / len(chunks)),
        min_words=min(word_counts),
        max_words=max(word_counts),
        has_timestamps=any(c.start_time is not None for c in chunks),
    )
