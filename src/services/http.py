"""Outbound HTTP helper with rate-limit backoff.

Every call to Garmin or a forecast provider goes through ``send_with_retry``.
On HTTP 429 the request is retried with exponential backoff (1s, 2s, 4s by
default); after ``max_retries`` rate-limited attempts one final attempt is
made and its response is returned whatever the status.  Any other status is
returned immediately: callers decide what counts as success.

Timeouts and transport errors are not retried here.  They propagate as
``httpx.HTTPError`` so the caller's fallback logic sees them as failures.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger("swellsync.http")

Sleeper = Callable[[float], Awaitable[Any]]

DEFAULT_TIMEOUT_SECONDS = 15.0


async def send_with_retry(
    method: str,
    url: str,
    *,
    http_client: httpx.AsyncClient | None = None,
    max_retries: int = 3,
    base_delay_seconds: float = 1.0,
    sleep: Sleeper = asyncio.sleep,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, backing off on 429 responses.

    Args:
        method:             HTTP method.
        url:                Full URL.
        http_client:        Optional pre-configured client (shared or mocked).
        max_retries:        Number of rate-limited attempts before the final one.
        base_delay_seconds: First backoff delay; doubles on each retry.
        sleep:              Awaitable sleep, injectable for tests.
        timeout:            Per-request timeout when no client is supplied.
        **kwargs:           Passed through to ``httpx.AsyncClient.request``.

    Returns:
        The last response received.
    """
    if http_client is not None:
        return await _send(http_client, method, url, max_retries, base_delay_seconds, sleep, kwargs)

    async with httpx.AsyncClient(timeout=timeout) as client:
        return await _send(client, method, url, max_retries, base_delay_seconds, sleep, kwargs)


async def _send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    max_retries: int,
    base_delay_seconds: float,
    sleep: Sleeper,
    kwargs: dict[str, Any],
) -> httpx.Response:
    for attempt in range(max_retries):
        response = await client.request(method, url, **kwargs)
        if response.status_code != 429:
            return response
        delay = base_delay_seconds * (2**attempt)
        logger.warning(
            "Rate limited by %s (attempt %d/%d), retrying in %.1fs",
            httpx.URL(url).host, attempt + 1, max_retries, delay,
        )
        await sleep(delay)

    return await client.request(method, url, **kwargs)
