"""Search endpoint: similarity search over the caller's podcasts."""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_services, get_user_id
from src.api.models import SearchRequestBody, SearchResultModel
from src.services import Services

router = APIRouter()


@router.post("/api/search", response_model=list[SearchResultModel])
async def search(
    request: SearchRequestBody,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> list[SearchResultModel]:
    results = await services.search.search(
        request.query,
        user_id,
        podcast_id=request.podcast_id,
        limit=request.limit,
        similarity_threshold=request.similarity_threshold,
    )
    return [SearchResultModel(**asdict(r)) for r in results]
