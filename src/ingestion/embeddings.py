"""Batched embedding generation using the OpenAI embeddings API."""

from __future__ import annotations

import asyncio
import logging

from openai import APIStatusError, AsyncOpenAI, RateLimitError

from src.errors import DeadlineExceededError, EmbeddingError, InvalidInputError
from src.pipeline_config import EmbeddingConfig
from src.retry import check_deadline, with_backoff

logger = logging.getLogger(__name__)


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider errors that signal rate limiting (HTTP 429)."""
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, APIStatusError) and exc.status_code == 429:
        return True
    message = str(exc).lower()
    return "rate_limit" in message or "rate limit" in message or "429" in message


class EmbeddingBatcher:
    """Turns texts into embedding vectors via an injected ``AsyncOpenAI`` client.

    Requests are sent in batches of ``config.batch_size`` with a short pause
    between batches. Rate-limited requests are retried with exponential
    backoff up to ``config.max_retries`` attempts; any other provider error
    is raised at once as a non-retryable :class:`EmbeddingError`.

    Example:
        >>> batcher = EmbeddingBatcher(AsyncOpenAI(api_key="..."))
        >>> vectors = await batcher.embed_batch(["Hello", "", "World"])
        >>> [len(v) for v in vectors]
        [1536, 0, 1536]
    """

    def __init__(self, client: AsyncOpenAI, config: EmbeddingConfig | None = None) -> None:
        self._client = client
        self._config = config or EmbeddingConfig()
        self._create = with_backoff(
            max_attempts=self._config.max_retries,
            base_delay=self._config.base_retry_delay,
            retry_on=is_rate_limit_error,
        )(self._request)

    @property
    def config(self) -> EmbeddingConfig:
        return self._config

    async def _request(self, inputs: list[str]) -> list[list[float]]:
        response = await self._client.embeddings.create(model=self._config.model, input=inputs)
        return [item.embedding for item in response.data]

    async def _call(
        self, inputs: list[str], description: str, deadline: float | None
    ) -> list[list[float]]:
        try:
            async with asyncio.timeout_at(deadline):
                vectors = await self._create(inputs)
        except TimeoutError as exc:
            raise DeadlineExceededError(f"Deadline reached while embedding {description}") from exc
        except Exception as exc:
            retryable = is_rate_limit_error(exc)
            logger.error("Embedding request for %s failed (retryable=%s): %s", description, retryable, exc)
            raise EmbeddingError(
                f"Failed to generate embeddings for {description}: {exc}",
                retryable=retryable,
            ) from exc

        if len(vectors) != len(inputs):
            raise EmbeddingError(
                f"Provider returned {len(vectors)} embeddings for {len(inputs)} inputs "
                f"({description})"
            )
        return vectors

    async def embed_batch(
        self, texts: list[str], deadline: float | None = None
    ) -> list[list[float]]:
        """Embed *texts*, preserving length and order.

        Empty or whitespace-only entries are not sent to the provider; their
        slot in the result holds an empty list so results zip 1:1 with inputs.

        Args:
            texts: Strings to embed.
            deadline: Optional absolute event-loop time by which every batch
                must have completed.

        Returns:
            One vector per input text.

        Raises:
            EmbeddingError: The provider failed; ``retryable`` marks rate limiting.
            DeadlineExceededError: *deadline* passed before all batches finished.
        """
        if not texts:
            return []

        result: list[list[float]] = [[] for _ in texts]
        valid = [(i, text.strip()) for i, text in enumerate(texts) if text and text.strip()]
        if not valid:
            return result

        batch_size = self._config.batch_size
        total_batches = (len(valid) + batch_size - 1) // batch_size

        for batch_number, start in enumerate(range(0, len(valid), batch_size), start=1):
            description = f"batch {batch_number}/{total_batches}"
            check_deadline(deadline, f"embedding {description}")

            batch = valid[start : start + batch_size]
            vectors = await self._call([text for _, text in batch], description, deadline)
            for (index, _), vector in zip(batch, vectors, strict=True):
                result[index] = vector

            if start + batch_size < len(valid):
                await asyncio.sleep(self._config.batch_delay)

        logger.debug("Embedded %d texts in %d batches", len(valid), total_batches)
        return result

    async def embed_one(self, text: str, deadline: float | None = None) -> list[float]:
        """Embed a single non-empty text.

        Raises:
            InvalidInputError: *text* is empty or whitespace-only.
            EmbeddingError: The provider failed.
        """
        if not text or not text.strip():
            raise InvalidInputError("Text cannot be empty")
        vectors = await self._call([text.strip()], "single text", deadline)
        return vectors[0]
