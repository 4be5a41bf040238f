"""
Usage recorder.

Counts one free-tier generation after it has succeeded. Runs as a background
task once the response is on its way, so bookkeeping can never make a
finished generation look failed.

Increments for the same user are serialised in-process and the store-side
increment is a single atomic function call, so parallel requests cannot
read the same counter value and lose an update.
"""

import asyncio
import logging
import weakref
from contextlib import nullcontext
from typing import Optional

from journal_api.core.config import QuotaFailurePolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.features.auth.validator import Principal
from journal_api.features.database.repositories.subscriptions import SubscriptionsRepository
from journal_api.shared.correlation import CorrelationContext

logger = logging.getLogger("JournalAI.Quota.Recorder")


class UsageRecorder:
    """Best-effort, per-user serialised usage increments."""

    def __init__(
        self,
        subscriptions: SubscriptionsRepository,
        failure_policy: QuotaFailurePolicy = QuotaFailurePolicy.AVAILABILITY_OVER_CONSISTENCY,
    ) -> None:
        self._subscriptions = subscriptions
        self.failure_policy = failure_policy
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def record_usage(
        self,
        principal: Principal,
        correlation_id: Optional[str] = None,
    ) -> Optional[int]:
        """
        Add one to the principal's free-tier counter.

        Returns:
            The new counter value, or None when the increment failed and the
            failure policy says to swallow it.
        """
        context = CorrelationContext(correlation_id) if correlation_id else nullcontext()
        with context:
            lock = self._lock_for(principal.id)
            async with lock:
                try:
                    return await self._subscriptions.increment_free_usage(principal.id)
                except Exception as exc:
                    if self.failure_policy is QuotaFailurePolicy.CONSISTENCY_OVER_AVAILABILITY:
                        logger.error(
                            "Failed to record usage for %s", mask_user_id(principal.id), exc_info=True,
                        )
                        raise
                    logger.error(
                        "Failed to record usage for %s, continuing: %s",
                        mask_user_id(principal.id), exc,
                    )
                    return None
