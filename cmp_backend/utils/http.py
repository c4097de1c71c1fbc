"""Retry helper for idempotent upstream calls (Webflow site listing)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    attempts: int = 3
    backoff_seconds: float = 0.5


def _should_retry(exc: httpx.HTTPError) -> bool:
    # 4xx means the request itself is wrong; repeating it cannot help.
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


async def request_with_retry(
    send: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Await ``send`` until it returns a 2xx response.

    Transport failures and 5xx responses are retried with linear backoff; the
    last error is raised once ``attempts`` are used up. Client errors are
    raised on the first occurrence.
    """
    config = retry_config or RetryConfig()
    for attempt in range(1, config.attempts + 1):
        try:
            response = await send(*args, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPError as exc:
            if attempt == config.attempts or not _should_retry(exc):
                raise
            logger.warning(
                "Upstream call failed with %s; retry %d of %d",
                type(exc).__name__,
                attempt,
                config.attempts - 1,
            )
            await asyncio.sleep(config.backoff_seconds * attempt)
    raise ValueError("RetryConfig.attempts must be at least 1")


__all__ = ["RetryConfig", "request_with_retry"]
