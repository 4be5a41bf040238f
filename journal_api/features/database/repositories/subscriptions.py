"""
Subscriptions Repository - the ``users`` table.

Holds each user's subscription status and free-tier usage counter.
Reads raise on failure so callers can apply their own failure policy.
"""

import logging
from typing import Any, Optional

import httpx

from journal_api.core.config import OutboundPolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.core.resilience import call_with_policy
from journal_api.features.quota.models import SubscriptionRecord

logger = logging.getLogger("JournalAI.Database.Subscriptions")

USERS_TABLE = "users"
INCREMENT_FUNCTION = "increment_free_insights_used"


class SubscriptionsRepository:
    """Repository for subscription status and usage counters."""

    def __init__(self, client: Any, policy: OutboundPolicy) -> None:
        """Initialize with a Supabase async client."""
        self.client = client
        self.policy = policy

    async def get(self, user_id: str) -> Optional[SubscriptionRecord]:
        """Fetch the user's record, or None when the user has no row yet."""
        result = await call_with_policy(
            lambda: self.client.table(USERS_TABLE)
            .select("subscription_status, free_insights_used, updated_at")
            .eq("id", user_id)
            .limit(1)
            .execute(),
            self.policy,
            name="store.users.select",
            retry_on=(httpx.TransportError,),
        )
        rows = result.data or []
        if not rows:
            return None
        return SubscriptionRecord.from_row(user_id, rows[0])

    async def increment_free_usage(self, user_id: str) -> int:
        """
        Atomically add one to the user's free-tier counter.

        Runs as a single Postgres function (upsert + increment), so concurrent
        calls never lose an update. Only connection failures are retried:
        once a request has been sent, a retry could count twice.

        Returns:
            The counter value after the increment
        """
        result = await call_with_policy(
            lambda: self.client.rpc(INCREMENT_FUNCTION, {"p_user_id": user_id}).execute(),
            self.policy,
            name="store.users.increment",
            retry_on=(httpx.ConnectError,),
        )
        new_value = _scalar(result.data)
        logger.info(
            "Free insight usage for %s is now %s", mask_user_id(user_id), new_value,
        )
        return new_value


def _scalar(data: Any) -> int:
    # PostgREST returns a bare scalar for scalar functions, older
    # versions wrap it in a list or an object keyed by function name
    if isinstance(data, list):
        data = data[0] if data else 0
    if isinstance(data, dict):
        data = data.get(INCREMENT_FUNCTION, next(iter(data.values()), 0))
    try:
        return int(data or 0)
    except (TypeError, ValueError):
        return 0
