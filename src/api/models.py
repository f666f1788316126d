"""Pydantic request/response schemas for the Podcast RAG API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TranscriptWordModel(BaseModel):
    text: str
    start: float
    end: float


class IndexRequest(BaseModel):
    """Request body for /api/embed and /api/reindex."""

    podcast_id: str = Field(min_length=1)


class IndexResponse(BaseModel):
    success: bool = True
    chunks_created: int


class SearchRequestBody(BaseModel):
    """Request body for the /api/search endpoint."""

    query: str = Field(min_length=1, max_length=2000)
    podcast_id: str | None = None
    limit: int | None = Field(default=None, ge=1, le=50)
    similarity_threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class SearchResultModel(BaseModel):
    """A single retrieved transcript chunk with metadata."""

    chunk_id: str
    podcast_id: str
    podcast_title: str
    content: str
    start_time: float | None = None
    end_time: float | None = None
    similarity: float
    is_fallback: bool = False


class ChatMessageModel(BaseModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str


class ChatRequest(BaseModel):
    """Request body for the /api/chat endpoint."""

    message: str = Field(min_length=1, max_length=2000)
    podcast_id: str | None = None
    history: list[ChatMessageModel] = []


class ChatSource(BaseModel):
    podcast_id: str
    podcast_title: str
    content: str
    start_time: float | None = None
    similarity: float


class ChatResponse(BaseModel):
    response: str
    sources: list[ChatSource]
    model: str | None = None


class TranscribeRequest(BaseModel):
    podcast_id: str = Field(min_length=1)


class TranscribeResponse(BaseModel):
    success: bool = True
    transcript_id: str
    word_count: int
    chunks_created: int
