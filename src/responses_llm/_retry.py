"""Retry logic with exponential backoff."""
from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from responses_llm.types import RetryPolicy

T = TypeVar("T")

logger = logging.getLogger(__name__)


def calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """Compute the delay for a given retry attempt.

    Uses exponential backoff clamped to *policy.max_delay*, with optional
    jitter.
    """
    delay = min(
        policy.base_delay * (policy.backoff_multiplier ** attempt),
        policy.max_delay,
    )
    if policy.jitter:
        delay *= random.uniform(0.5, 1.5)
    return delay


async def with_retry(fn: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """Await *fn()*, retrying according to *policy* on retryable failures.

    Only exceptions carrying a truthy ``retryable`` attribute are retried;
    anything else propagates on the first failure.
    """
    for attempt in range(policy.max_retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.max_retries:
                raise
            if not getattr(exc, "retryable", False):
                raise

            retry_after: float | None = getattr(exc, "retry_after", None)
            if retry_after is not None and retry_after > policy.max_delay:
                raise

            if retry_after is not None:
                delay = retry_after
            else:
                delay = calculate_delay(attempt, policy)

            logger.info(
                "Retrying after %s (attempt %d/%d, delay %.2fs)",
                type(exc).__name__, attempt + 1, policy.max_retries, delay,
            )
            if policy.on_retry is not None:
                policy.on_retry(attempt, exc, delay)

            await asyncio.sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
