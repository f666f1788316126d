"""Typed errors raised by the indexing and retrieval core.

The HTTP layer translates these into status codes; nothing in this package
turns them into user-facing messages.
"""

from __future__ import annotations


class PodcastRAGError(Exception):
    """Base class for all errors raised by this package."""

    retryable: bool = False


class ConfigurationError(PodcastRAGError):
    """Required settings are missing or invalid at startup."""


class InvalidInputError(PodcastRAGError):
    """Input rejected before any external call (empty query, blank ids...)."""


class PodcastNotFoundError(PodcastRAGError):
    """The referenced podcast does not exist."""


class OwnershipError(PodcastRAGError):
    """The caller does not own the podcast it tried to act on."""


class NothingToIndexError(PodcastRAGError):
    """The podcast has no transcript to index."""


class InvalidStatusTransitionError(PodcastRAGError):
    """A processing-status change that the state machine does not allow."""

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move podcast status from {current!r} to {target!r}")
        self.current = current
        self.target = target


class EmbeddingError(PodcastRAGError):
    """The embedding provider failed.

    ``retryable`` is True when the failure was rate limiting that outlasted
    the internal backoff, so an upstream caller may re-trigger the operation.
    """

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class PersistenceError(PodcastRAGError):
    """A store read or write failed mid-operation. No rollback is attempted."""


class DeadlineExceededError(PodcastRAGError):
    """The caller-supplied deadline passed before the operation finished."""

    retryable = True


class TranscriptionError(PodcastRAGError):
    """The transcription provider rejected or failed to process the audio."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        transcript_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.transcript_id = transcript_id
