# src/llm/retry.py - v2
"""Retry policy for summarization attempts: linear backoff, terminal errors pass through.

Provider clients never retry. The summarization run wraps each whole
attempt (chunking included) in with_retry so no partial state survives
a failed attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from pagedigest.llm.cancellation import CancellationToken
from pagedigest.llm.errors import TerminalError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one summarization run."""

    max_retries: int = 2
    base_delay_s: float = 1.0

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    def delay_for(self, retry: int) -> float:
        """Delay before retry number *retry* (1-based)."""
        return self.base_delay_s * retry


def is_retryable(error: BaseException) -> bool:
    """Terminal engine errors are final; any other exception is transient."""
    return isinstance(error, Exception) and not isinstance(error, TerminalError)


async def with_retry(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy | None = None,
    label: str = "summarization",
    cancellation_token: CancellationToken | None = None,
    **kwargs: Any,
) -> T:
    """Execute an async function, retrying transient failures.

    The backoff sleep is abandoned as soon as the cancellation token fires.

    Raises:
        The last transient error, unchanged, once retries are exhausted,
        or the first terminal error immediately.
    """
    policy = policy or RetryPolicy()
    retries = 0

    while True:
        if cancellation_token is not None:
            cancellation_token.raise_if_cancelled()
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e) or retries >= policy.max_retries:
                raise
            retries += 1
            delay = policy.delay_for(retries)
            logger.warning(
                "%s attempt %d/%d failed (%s: %s), retrying in %.1fs",
                label, retries, policy.max_attempts, type(e).__name__, e, delay,
            )
            if cancellation_token is None:
                await asyncio.sleep(delay)
            else:
                cancellation_token.raise_if_cancelled()
                await cancellation_token.run(asyncio.sleep(delay))
