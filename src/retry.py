"""Exponential backoff and deadlines for async calls to external providers.

Deadlines are absolute instants on the event loop clock
(``asyncio.get_running_loop().time()``, i.e. ``time.monotonic()``).
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.errors import DeadlineExceededError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


async def _sleep(seconds: float) -> None:
    # Looked up at call time so tests can patch asyncio.sleep.
    await asyncio.sleep(seconds)


def deadline_after(seconds: float | None) -> float | None:
    """Absolute deadline *seconds* from now, or None for no deadline."""
    if seconds is None:
        return None
    return asyncio.get_running_loop().time() + seconds


def check_deadline(deadline: float | None, operation: str) -> None:
    """Raise DeadlineExceededError if *deadline* has already passed."""
    if deadline is not None and asyncio.get_running_loop().time() >= deadline:
        raise DeadlineExceededError(f"Deadline reached before {operation}")


def with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Callable[[BaseException], bool] = lambda exc: False,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Retry an async function while ``retry_on(exc)`` is true.

    The delay before retry ``n`` (0-based) is ``base_delay * 2**n``. After
    ``max_attempts`` tries, or on any exception ``retry_on`` rejects, the
    last exception propagates unchanged.

    Args:
        max_attempts: Total number of calls, including the first one.
        base_delay: Seconds to wait before the first retry.
        retry_on: Predicate selecting which exceptions are worth retrying.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retrying = AsyncRetrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay),
        retry=retry_if_exception(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=_sleep,
    )

    def decorator(fn: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await retrying.copy()(fn, *args, **kwargs)

        return wrapper

    return decorator
