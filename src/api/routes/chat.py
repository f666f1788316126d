"""Chat endpoint: retrieve context from the caller's podcasts and answer with Claude."""

from __future__ import annotations

from typing import Annotated

from anthropic import APIStatusError
from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_services, get_user_id
from src.api.models import ChatRequest, ChatResponse, ChatSource
from src.retrieval.generation import generate_answer
from src.services import Services

router = APIRouter()

NO_CONTENT_RESPONSE = (
    "I couldn't find any relevant content in your podcasts to answer this question. "
    "Try asking something related to the topics covered in your uploaded podcasts."
)


@router.post("/api/chat", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    services: Annotated[Services, Depends(get_services)],
    user_id: Annotated[str, Depends(get_user_id)],
) -> ChatResponse:
    """Answer a question using RAG over the caller's podcast transcripts.

    Retrieval uses the looser chat threshold so borderline chunks still
    reach the model as context.
    """
    if services.llm is None:
        raise HTTPException(status_code=501, detail="Chat is not configured")

    results = await services.search.search(
        request.message,
        user_id,
        podcast_id=request.podcast_id,
        similarity_threshold=services.search.config.chat_similarity_threshold,
    )
    if not results:
        return ChatResponse(response=NO_CONTENT_RESPONSE, sources=[])

    try:
        answer = await generate_answer(
            services.llm,
            services.llm_model,
            request.message,
            results,
            history=[m.model_dump() for m in request.history],
        )
    except APIStatusError as exc:
        # Claude overloaded (529) or other upstream error: 503 keeps a JSON body.
        raise HTTPException(status_code=503, detail=f"LLM unavailable: {exc.message}") from exc

    return ChatResponse(
        response=answer["answer"],
        sources=[ChatSource(**s) for s in answer["sources"]],
        model=answer.get("model"),
    )
