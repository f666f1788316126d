from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes.chat import router as chat_router
from src.api.routes.indexing import router as indexing_router
from src.api.routes.search import router as search_router
from src.api.routes.transcribe import router as transcribe_router
from src.config import configure_logging, settings
from src.errors import (
    ConfigurationError,
    DeadlineExceededError,
    EmbeddingError,
    InvalidInputError,
    InvalidStatusTransitionError,
    NothingToIndexError,
    OwnershipError,
    PodcastNotFoundError,
    PodcastRAGError,
    TranscriptionError,
)
from src.services import build_services

_STATUS_CODES: list[tuple[type[PodcastRAGError], int]] = [
    (InvalidInputError, 400),
    (NothingToIndexError, 400),
    (OwnershipError, 403),
    (PodcastNotFoundError, 404),
    (InvalidStatusTransitionError, 409),
    (TranscriptionError, 502),
    (DeadlineExceededError, 504),
    (ConfigurationError, 500),
]


def status_code_for(exc: PodcastRAGError) -> int:
    """HTTP status for a core error. Retryable provider failures map to 503."""
    if isinstance(exc, EmbeddingError):
        return 503 if exc.retryable else 502
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    # Fails fast on missing configuration instead of on the first request.
    app.state.services = await build_services(settings)
    yield


app = FastAPI(
    title="Podcast RAG API",
    description="Transcript chunking, embedding, and similarity search for podcasts",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_origin_regex=r"https://.*\.vercel\.app|http://localhost:\d+",
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(indexing_router)
app.include_router(search_router)
app.include_router(chat_router)
app.include_router(transcribe_router)


@app.exception_handler(PodcastRAGError)
async def podcast_rag_error_handler(request: Request, exc: PodcastRAGError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"success": False, "error": str(exc), "retryable": exc.retryable},
    )


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}
