"""Outbound JSON GET helper shared by every source fetcher.

Wraps httpx with retry + metrics so tools only deal with parsed payloads.
Returns None on timeout, HTTP error, malformed JSON, or any unexpected
failure. Never raises (except cancellation, which always propagates).
"""

import time
from typing import Any

import httpx
import structlog

from knowledge_engine.core.config import settings
from knowledge_engine.core.metrics import source_call_duration_seconds, source_calls_total
from knowledge_engine.core.retry import RetryPolicy, retry_with_backoff

logger = structlog.get_logger(__name__)


async def fetch_json(
    source: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: float | None = None,
    max_attempts: int | None = None,
) -> Any | None:
    """
    GET ``url`` and return the decoded JSON body, or None.

    Args:
        source:       Provider label used for logs and metrics (e.g. "wikipedia").
        url:          Absolute URL.
        params:       Optional query string parameters.
        timeout:      Per-attempt timeout in seconds (defaults to HTTP_TIMEOUT).
        max_attempts: Retry attempts (defaults to HTTP_MAX_ATTEMPTS).
    """

    async def _fetch() -> Any:
        async with httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT,
            headers={"User-Agent": settings.HTTP_USER_AGENT, "Accept": "application/json"},
            follow_redirects=True,
        ) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    start_time = time.perf_counter()
    try:
        data = await retry_with_backoff(
            _fetch, source=source, policy=RetryPolicy.from_settings(max_attempts)
        )
    finally:
        duration = time.perf_counter() - start_time
        source_call_duration_seconds.labels(source=source).observe(duration)

    if data is None:
        source_calls_total.labels(source=source, status="error").inc()
        logger.warning("http.fetch_failed", source=source, url=url)
        return None

    source_calls_total.labels(source=source, status="success").inc()
    return data
