"""Construction of provider clients and core services from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from src.config import Settings
from src.ingestion.embeddings import EmbeddingBatcher
from src.ingestion.pipeline import IndexWriter
from src.ingestion.storage import PodcastStore, get_supabase_client
from src.ingestion.transcription import AssemblyAITranscriber
from src.pipeline_config import EmbeddingConfig, SearchConfig
from src.retrieval.search import FallbackStrategy, PrimaryStrategy, SimilaritySearch

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request handler or script needs, built once at startup."""

    store: PodcastStore
    embedder: EmbeddingBatcher
    writer: IndexWriter
    search: SimilaritySearch
    llm: AsyncAnthropic | None = None
    llm_model: str = ""
    transcriber: AssemblyAITranscriber | None = None


async def build_services(settings: Settings) -> Services:
    """Validate configuration and build all clients.

    OpenAI and Supabase are required. Anthropic and AssemblyAI are optional;
    the routes that need them answer 501 when they are absent.

    Raises:
        ConfigurationError: A required setting is missing.
    """
    settings.require("openai_api_key", "supabase_url", "supabase_key")

    supabase = await get_supabase_client(settings.supabase_url, settings.supabase_key)
    store = PodcastStore(supabase)
    embedder = EmbeddingBatcher(
        AsyncOpenAI(api_key=settings.openai_api_key),
        EmbeddingConfig.from_settings(settings),
    )
    search_config = SearchConfig.from_settings(settings)

    services = Services(
        store=store,
        embedder=embedder,
        writer=IndexWriter(
            store,
            embedder,
            embed_batch_size=settings.index_embed_batch_size,
            insert_batch_size=settings.insert_batch_size,
        ),
        search=SimilaritySearch(
            embedder,
            PrimaryStrategy(store),
            FallbackStrategy(store, search_config.fallback_similarity),
            search_config,
        ),
    )

    if settings.anthropic_api_key:
        services.llm = AsyncAnthropic(api_key=settings.anthropic_api_key)
        services.llm_model = settings.llm_model
    else:
        logger.warning("ANTHROPIC_API_KEY not set; /api/chat is disabled")

    if settings.assemblyai_api_key:
        services.transcriber = AssemblyAITranscriber(settings.assemblyai_api_key)
    else:
        logger.warning("ASSEMBLYAI_API_KEY not set; /api/transcribe is disabled")

    return services
