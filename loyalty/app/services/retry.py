"""Bounded retry with exponential backoff for upstream calls"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from loyalty.domain.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 10.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)"""
        delay = self.base_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        if self.max_backoff_seconds:
            delay = min(delay, self.max_backoff_seconds)
        return max(delay, 0.0)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str,
    retry_on: Tuple[Type[BaseException], ...] = (UpstreamUnavailable,),
) -> T:
    """
    Run an upstream operation, retrying transient failures

    Only exceptions listed in retry_on are retried; anything else propagates
    immediately. The last transient error is re-raised once attempts run out.
    """
    max_attempts = max(policy.max_attempts, 1)
    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_attempts}): {e}; "
                f"retrying in {delay:.2f}s"
            )
            if delay:
                await asyncio.sleep(delay)
    raise RuntimeError("unreachable")
