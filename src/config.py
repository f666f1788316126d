from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

from src.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # API Keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    assemblyai_api_key: str = ""  # Optional: only /api/transcribe needs it

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""

    # App config
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    llm_model: str = "claude-sonnet-4-20250514"
    log_level: str = "INFO"

    # Embedding provider limits
    embedding_batch_size: int = 100
    embedding_batch_delay: float = 0.1
    max_retries: int = 3
    base_retry_delay: float = 1.0

    # Indexing
    index_embed_batch_size: int = 20
    insert_batch_size: int = 100
    indexing_timeout_seconds: float = 60.0

    # Search
    search_limit: int = 5
    similarity_threshold: float = 0.7
    chat_similarity_threshold: float = 0.5
    fallback_similarity: float = 0.8

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def require(self, *names: str) -> None:
        """Raise ConfigurationError if any of the named settings is empty."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required configuration: {env_names}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and scripts."""
    logging.basicConfig(
        level=(level or get_settings().log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = get_settings()
