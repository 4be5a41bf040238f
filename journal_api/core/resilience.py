"""Timeouts and bounded retries for outbound calls (Supabase, Anthropic)."""

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from journal_api.core.config import OutboundPolicy

logger = logging.getLogger("JournalAI.Resilience")

T = TypeVar("T")


def _log_retry(name: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "%s attempt %s failed (%s), retrying",
            name,
            state.attempt_number,
            type(exc).__name__ if exc else "unknown",
        )
    return before_sleep


async def call_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: OutboundPolicy,
    *,
    name: str,
    retry_on: Tuple[Type[BaseException], ...] = (),
) -> T:
    """
    Run ``operation`` under ``policy``.

    Each attempt is bounded by ``policy.timeout_seconds``. Timeouts and the
    exception types in ``retry_on`` are retried with jittered exponential
    backoff up to ``policy.max_attempts``; anything else propagates at once.
    The last exception is re-raised when attempts run out.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_random_exponential(
            multiplier=policy.backoff_seconds,
            max=policy.backoff_max_seconds,
        ),
        retry=retry_if_exception_type((asyncio.TimeoutError,) + tuple(retry_on)),
        before_sleep=_log_retry(name),
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            result = await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
    return result
