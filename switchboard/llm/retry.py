"""
Bounded retry with exponential backoff for transient provider failures.

Only rate-limit and server-side failures are retried; anything else is
re-raised immediately so the router can move on to the next provider.
The error that finally escapes is always the provider's original
exception, never a wrapper.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from switchboard.exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_MESSAGE = re.compile(r"rate.?limit|429|too many requests|overloaded|503", re.IGNORECASE)


def _status_of(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """True for HTTP 429/5xx errors and rate-limit/overload messages."""
    if isinstance(error, ProviderError):
        return error.retryable

    status = _status_of(error)
    if status is not None and (status == 429 or 500 <= status < 600):
        return True

    return bool(_RETRYABLE_MESSAGE.search(str(error)))


def backoff_delay(attempt: int, base_s: float, max_s: float, jitter_s: float) -> float:
    """Delay before retry `attempt` (0-based): base * 2^attempt, capped, plus jitter."""
    delay = min(base_s * (2 ** attempt), max_s)
    if jitter_s > 0:
        delay += random.uniform(0, jitter_s)
    return delay


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    backoff_base_s: float = 1.0,
    backoff_max_s: float = 8.0,
    jitter_s: float = 0.5,
    provider: str = "",
) -> T:
    """
    Await `fn()` up to `max_retries + 1` times.

    Non-retryable errors and the error from the final attempt propagate
    unchanged.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= max_retries or not is_retryable_error(e):
                raise
            delay = backoff_delay(attempt, backoff_base_s, backoff_max_s, jitter_s)
            attempt += 1
            logger.info(
                "llm_retry_scheduled",
                extra={
                    "provider": provider,
                    "attempt": attempt,
                    "max_retries": max_retries,
                    "delay_s": round(delay, 3),
                    "error": str(e)[:200],
                },
            )
            await asyncio.sleep(delay)
