"""Exponential backoff for calls to public information providers.

A failed call is retried only when a second attempt can plausibly succeed:
transport errors, timeouts, 429 and 5xx responses. Permanent client errors
(a dictionary answering 404 for an unknown word) and malformed bodies fail on
the first attempt. Exhaustion returns None; cancellation always propagates.
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx
import structlog

from knowledge_engine.core.config import settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# 4xx answers other than 408/429 will be the same on the next attempt.
NON_RETRYABLE_STATUSES: frozenset[int] = frozenset({400, 401, 403, 404, 405, 410, 422})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 2
    base_delay: float = 0.25
    max_delay: float = 2.0
    jitter: float = 0.1  # fraction of the delay added at random

    @classmethod
    def from_settings(cls, max_attempts: int | None = None) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts or settings.HTTP_MAX_ATTEMPTS,
            base_delay=settings.HTTP_RETRY_BASE_DELAY,
            max_delay=settings.HTTP_RETRY_MAX_DELAY,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code not in NON_RETRYABLE_STATUSES
    if isinstance(exc, httpx.TransportError):
        return True
    # Malformed JSON (ValueError) and programming errors do not heal on retry.
    return False


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    source: str,
    policy: RetryPolicy | None = None,
) -> T | None:
    """Await ``func()`` until it succeeds or the policy gives up.

    Returns the first successful result, or None once attempts are exhausted
    or a non-retryable error occurs. Never raises, except for cancellation.
    """
    policy = policy or RetryPolicy.from_settings()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func()
        except Exception as exc:
            status_code = (
                exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
            )
            if not is_retryable(exc):
                logger.warning(
                    "retry.non_retryable",
                    source=source,
                    status_code=status_code,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return None
            if attempt == policy.max_attempts:
                logger.error(
                    "retry.exhausted",
                    source=source,
                    attempts=attempt,
                    status_code=status_code,
                    error=str(exc),
                )
                return None

            delay = policy.delay_for(attempt)
            logger.info(
                "retry.attempt",
                source=source,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                delay_seconds=round(delay, 3),
                status_code=status_code,
            )
            await asyncio.sleep(delay)
    return None
