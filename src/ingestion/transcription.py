"""Podcast transcription via the AssemblyAI SDK."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import assemblyai as aai  # type: ignore[import-untyped]

from src.errors import TranscriptionError
from src.ingestion.models import TranscriptResult, TranscriptUtterance, TranscriptWord

logger = logging.getLogger(__name__)


def ms_to_seconds(ms: float) -> float:
    return round(ms / 1000, 2)


def _transform_words(words: list[Any] | None) -> list[TranscriptWord]:
    return [
        TranscriptWord(text=w.text, start=ms_to_seconds(w.start), end=ms_to_seconds(w.end))
        for w in words or []
    ]


def _transform_utterances(utterances: list[Any] | None) -> list[TranscriptUtterance]:
    return [
        TranscriptUtterance(
            speaker=u.speaker,
            text=u.text,
            start=ms_to_seconds(u.start),
            end=ms_to_seconds(u.end),
        )
        for u in utterances or []
    ]


class AssemblyAITranscriber:
    """Submit an audio URL and wait for text plus word timestamps.

    The SDK is synchronous, so :meth:`transcribe` runs it in a worker thread.
    """

    def __init__(self, api_key: str, transcriber: Any | None = None) -> None:
        aai.settings.api_key = api_key
        self._transcriber = transcriber or aai.Transcriber()
        # speaker_labels gives utterances; summarization gives bullet summaries.
        # auto_chapters cannot be combined with summarization.
        self._config = aai.TranscriptionConfig(
            speech_models=["universal-3-pro"],
            punctuate=True,
            format_text=True,
            speaker_labels=True,
            summarization=True,
            summary_model=aai.SummarizationModel.informative,
            summary_type=aai.SummarizationType.bullets,
        )

    async def transcribe(self, audio_url: str) -> TranscriptResult:
        """Transcribe the audio at *audio_url*.

        Raises:
            TranscriptionError: ``code`` is one of ``INVALID_URL``, ``TIMEOUT``,
                ``TRANSCRIPTION_ERROR``, ``NO_TEXT`` or ``UNKNOWN_ERROR``.
        """
        if not audio_url or not audio_url.startswith(("http://", "https://")):
            raise TranscriptionError(
                "Invalid audio URL. Please ensure the URL is accessible.", "INVALID_URL"
            )
        return await asyncio.to_thread(self._transcribe_sync, audio_url)

    def _transcribe_sync(self, audio_url: str) -> TranscriptResult:
        logger.info("Starting transcription for %s", audio_url)
        try:
            transcript = self._transcriber.transcribe(audio_url, config=self._config)
        except Exception as exc:
            message = str(exc)
            if "invalid audio url" in message.lower():
                raise TranscriptionError(
                    "Invalid audio URL. Please ensure the URL is accessible.", "INVALID_URL"
                ) from exc
            if "timeout" in message.lower():
                raise TranscriptionError(
                    "Transcription timed out. The audio file may be too long.", "TIMEOUT"
                ) from exc
            raise TranscriptionError(message or "Transcription failed", "UNKNOWN_ERROR") from exc

        if transcript.status == aai.TranscriptStatus.error:
            raise TranscriptionError(
                transcript.error or "Transcription failed",
                "TRANSCRIPTION_ERROR",
                transcript.id,
            )
        if not transcript.text:
            raise TranscriptionError("No transcript text generated", "NO_TEXT", transcript.id)

        logger.info("Transcription completed: %s", transcript.id)
        return TranscriptResult(
            text=transcript.text,
            transcript_id=transcript.id,
            words=_transform_words(transcript.words),
            utterances=_transform_utterances(transcript.utterances),
            summary=transcript.summary or None,
            audio_duration=transcript.audio_duration or None,
        )
