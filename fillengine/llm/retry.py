"""Retry policy for calls to the analysis service."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class TransientServiceError(Exception):
    """A failure worth one more attempt: overload, 5xx, timeout, dropped connection."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def backoff_delay(attempt: int, *, base_delay: float, max_delay: float) -> float:
    """Exponential delay for the given attempt (0-based) with +/-20% jitter."""

    delay = min(base_delay * (2**attempt), max_delay)
    jitter = delay * 0.2 * (random.random() * 2 - 1)
    return max(0.0, delay + jitter)


async def with_retry(
    operation: Callable[[], Awaitable[_T]],
    *,
    max_retries: int = 1,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> _T:
    """Run operation, retrying only TransientServiceError up to max_retries times."""

    attempt = 0
    while True:
        try:
            return await operation()
        except TransientServiceError as exc:
            if attempt >= max_retries:
                raise
            delay = backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay)
            logger.warning(
                "transient analysis failure (attempt %d/%d), retrying in %.2fs: %s",
                attempt + 1,
                max_retries + 1,
                delay,
                exc,
            )
            attempt += 1
            await sleep(delay)
