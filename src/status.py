"""Podcast processing status and its allowed transitions."""

from __future__ import annotations

from enum import StrEnum

from src.errors import InvalidStatusTransitionError


class PodcastStatus(StrEnum):
    """Processing state stored in ``podcasts.status``."""

    UPLOADING = "uploading"
    TRANSCRIBING = "transcribing"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


# ERROR is reachable from every state and is added in can_transition().
# READY/ERROR -> PROCESSING allows a podcast to be re-indexed.
_TRANSITIONS: dict[PodcastStatus, frozenset[PodcastStatus]] = {
    PodcastStatus.UPLOADING: frozenset({PodcastStatus.TRANSCRIBING}),
    PodcastStatus.TRANSCRIBING: frozenset({PodcastStatus.PROCESSING}),
    PodcastStatus.PROCESSING: frozenset({PodcastStatus.READY}),
    PodcastStatus.READY: frozenset({PodcastStatus.PROCESSING}),
    PodcastStatus.ERROR: frozenset({PodcastStatus.PROCESSING}),
}

# Statuses in which a transcript exists and indexing may run.
INDEXABLE_STATUSES = frozenset({PodcastStatus.PROCESSING, PodcastStatus.READY})


def can_transition(current: str | PodcastStatus, target: str | PodcastStatus) -> bool:
    """Return True if moving from *current* to *target* is allowed.

    Staying in the same state is always allowed.
    """
    current = PodcastStatus(current)
    target = PodcastStatus(target)
    if current is target or target is PodcastStatus.ERROR:
        return True
    return target in _TRANSITIONS[current]


def validate_transition(
    current: str | PodcastStatus, target: str | PodcastStatus
) -> PodcastStatus:
    """Return *target* as a PodcastStatus, or raise if the move is not allowed.

    Raises:
        InvalidStatusTransitionError: If the transition is not in the table or
            either value is not a known status.
    """
    try:
        allowed = can_transition(current, target)
    except ValueError as exc:
        raise InvalidStatusTransitionError(str(current), str(target)) from exc
    if not allowed:
        raise InvalidStatusTransitionError(str(current), str(target))
    return PodcastStatus(target)


def parse_status(value: str | None, target: str | PodcastStatus) -> PodcastStatus:
    """Read a stored ``podcasts.status`` value on the way to *target*.

    A missing status counts as ``uploading``.

    Raises:
        InvalidStatusTransitionError: *value* is not a known status.
    """
    try:
        return PodcastStatus(value or PodcastStatus.UPLOADING)
    except ValueError as exc:
        raise InvalidStatusTransitionError(str(value), str(target)) from exc
