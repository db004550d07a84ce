"""Retry engine for provider calls.

Two wait disciplines share one attempt budget:

- Rate-limit failures wait a fixed delay. Free-tier quotas usually reset
  on whole-minute boundaries, so growing the wait buys nothing.
- Every other failure waits an exponential backoff that grows only on
  non-rate-limit failures.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import anyio

from relay_llm.errors import is_rate_limit_error, is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for the provider retry loop."""

    max_attempts: int = 5
    rate_limit_delay: float = 20.0
    initial_delay: float = 2.0
    backoff_factor: float = 2.0

    def compute_backoff(self, step: int) -> float:
        """Backoff for the *step*-th non-rate-limit failure (0-indexed)."""
        return self.initial_delay * (self.backoff_factor**step)


# (attempt, error, delay_seconds, is_rate_limit); attempt is 1-based.
OnRetryCallback = Callable[[int, Exception, float, bool], Awaitable[None] | None]


async def retry_with_policy(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    on_retry: OnRetryCallback | None = None,
) -> T:
    """Execute an async function, retrying failures per *policy*.

    Errors flagged ``retryable=False`` (e.g. :class:`AuthenticationError`)
    are raised on the first attempt without consuming the budget. Rate
    limits always wait the fixed ``rate_limit_delay``; a server-sent
    ``RateLimitError.retry_after`` is ignored. When the attempt budget is
    spent the last error is raised unchanged.

    Args:
        fn: Async callable to execute.
        policy: Retry configuration. Uses defaults if None.
        on_retry: Optional callback invoked before each wait with
            (attempt, error, delay, is_rate_limit).

    Returns:
        The result of a successful ``fn()`` call.

    Raises:
        ValueError: If ``policy.max_attempts`` is less than 1.
    """
    if policy is None:
        policy = RetryPolicy()
    if policy.max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {policy.max_attempts}")

    backoff_step = 0

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await fn()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= policy.max_attempts:
                raise

            rate_limited = is_rate_limit_error(exc)
            if rate_limited:
                delay = policy.rate_limit_delay
            else:
                delay = policy.compute_backoff(backoff_step)
                backoff_step += 1

            logger.info(
                "Provider call failed (attempt %d/%d, rate_limit=%s): %s; retrying in %.1fs",
                attempt,
                policy.max_attempts,
                rate_limited,
                exc,
                delay,
            )

            if on_retry is not None:
                result = on_retry(attempt, exc, delay, rate_limited)
                if isinstance(result, Awaitable):
                    await result

            await anyio.sleep(delay)

    # Unreachable: the last attempt either returns or raises.
    raise AssertionError("retry loop exited without a result")
