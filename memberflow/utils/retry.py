from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from ..contracts import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(attempt: int, base: float = 1.5, jitter: float = 0.5) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base=base, jitter=jitter)
    await asyncio.sleep(delay)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy],
    description: str = "call",
) -> T:
    """Await ``func`` until it succeeds or ``policy.max_attempts`` is used up.

    The last exception is re-raised once attempts are exhausted.
    """
    attempts = policy.max_attempts if policy else 1
    attempt = 1
    while True:
        try:
            return await func()
        except Exception as exc:
            if attempt >= attempts:
                raise
            logger.warning(
                f"{description} failed on attempt {attempt}/{attempts}: {exc}; retrying"
            )
            await schedule_retry(attempt, base=policy.backoff_base, jitter=policy.jitter)
            attempt += 1
