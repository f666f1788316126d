"""Transcription endpoint: transcribe a podcast's audio, then index it."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_services, get_user_id
from src.api.models import TranscribeRequest, TranscribeResponse
from src.config import settings
from src.extraction.topics import extract_topics
from src.ingestion.pipeline import run_indexing_job
from src.retry import deadline_after
from src.services import Services
from src.status import PodcastStatus, parse_status, validate_transition

logger = logging.getLogger(__name__)

router = APIRouter()


async def _topics_or_empty(services: Services, podcast_id: str, transcript: str) -> list[str]:
    """Topics are optional: no LLM or a failed call yields an empty list."""
    if services.llm is None:
        return []
    try:
        return await extract_topics(services.llm, services.llm_model, transcript)
    except Exception:
        logger.warning("Topic extraction failed for podcast %s", podcast_id, exc_info=True)
        return []


@router.post("/api/transcribe", response_model=TranscribeResponse)
async def transcribe(
    request: TranscribeRequest,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> TranscribeResponse:
    """Run ``uploading -> transcribing -> processing -> ready`` for one podcast.

    The transcript and its word timeline are saved on the podcast row before
    indexing, so a later /api/reindex keeps chunk timestamps.
    """
    if services.transcriber is None:
        raise HTTPException(status_code=501, detail="Audio transcription is not configured.")

    podcast_id = request.podcast_id
    podcast = await services.writer.load_owned_podcast(podcast_id, user_id)
    current = parse_status(podcast.get("status"), PodcastStatus.TRANSCRIBING)
    await services.store.set_status(
        podcast_id, validate_transition(current, PodcastStatus.TRANSCRIBING)
    )

    try:
        result = await services.transcriber.transcribe(podcast.get("audio_url") or "")
        topics = await _topics_or_empty(services, podcast_id, result.text)
        await services.store.update_podcast(
            podcast_id,
            {
                "transcript": result.text,
                "transcript_words": [asdict(w) for w in result.words],
                "utterances": [asdict(u) for u in result.utterances],
                "summary": result.summary,
                "topics": topics,
                "duration": round(result.audio_duration) if result.audio_duration else None,
                "status": validate_transition(
                    PodcastStatus.TRANSCRIBING, PodcastStatus.PROCESSING
                ).value,
                "error_message": None,
            },
        )
    except Exception as exc:
        logger.exception("Transcription failed for podcast %s", podcast_id)
        await services.store.set_status(podcast_id, PodcastStatus.ERROR, error_message=str(exc))
        raise

    chunks_created = await run_indexing_job(
        services.writer,
        services.store,
        podcast_id,
        user_id,
        transcript=result.text,
        words=result.words,
        deadline=deadline_after(settings.indexing_timeout_seconds),
    )
    return TranscribeResponse(
        transcript_id=result.transcript_id,
        word_count=len(result.text.split()),
        chunks_created=chunks_created,
    )
