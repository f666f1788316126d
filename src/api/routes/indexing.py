"""Indexing endpoints: first-time embedding and recovery re-indexing."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_services, get_user_id
from src.api.models import IndexRequest, IndexResponse
from src.config import settings
from src.errors import InvalidStatusTransitionError
from src.ingestion.pipeline import run_indexing_job
from src.retry import deadline_after
from src.services import Services
from src.status import INDEXABLE_STATUSES, PodcastStatus, parse_status

router = APIRouter()


@router.post("/api/embed", response_model=IndexResponse)
async def embed(
    request: IndexRequest,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> IndexResponse:
    """Index a transcribed podcast for vector search.

    The podcast must already be ``processing`` or ``ready``; podcasts still
    uploading or transcribing are rejected with 409.
    """
    podcast = await services.writer.load_owned_podcast(request.podcast_id, user_id)
    status = parse_status(podcast.get("status"), PodcastStatus.PROCESSING)
    if status not in INDEXABLE_STATUSES:
        raise InvalidStatusTransitionError(status, PodcastStatus.PROCESSING)

    await run_indexing_job(
        services.writer,
        services.store,
        request.podcast_id,
        user_id,
        deadline=deadline_after(settings.indexing_timeout_seconds),
    )
    return IndexResponse(chunks_created=await services.store.count_chunks(request.podcast_id))


@router.post("/api/reindex", response_model=IndexResponse)
async def reindex(
    request: IndexRequest,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> IndexResponse:
    """Delete and rebuild a podcast's chunks.

    Meant for podcasts stuck in ``processing`` after a timeout, or left in
    ``error`` by a failed run.
    """
    await run_indexing_job(
        services.writer,
        services.store,
        request.podcast_id,
        user_id,
        deadline=deadline_after(settings.indexing_timeout_seconds),
    )
    return IndexResponse(chunks_created=await services.store.count_chunks(request.podcast_id))
