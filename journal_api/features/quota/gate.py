"""
Tier/Quota gate.

Decides whether a principal may run another AI generation:

    premium                      -> allow (premium_access), no ceiling
    free, used < FREE_LIMIT      -> allow (free_quota_available), remaining = limit - used
    free, used >= FREE_LIMIT     -> deny  (free_quota_exceeded)
    store unreadable             -> QuotaFailurePolicy decides

Users without a ``users`` row are treated as free with nothing used; the row
is only created when their first usage is recorded.
"""

import logging
from typing import Optional

from journal_api.core.config import Config, QuotaFailurePolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.features.auth.validator import Principal
from journal_api.features.database.repositories.subscriptions import SubscriptionsRepository
from journal_api.features.quota.models import (
    PermissionReason,
    SubscriptionRecord,
    SubscriptionStatus,
    UsagePermission,
)
from journal_api.shared.errors import DatabaseError, ServiceUnavailable

logger = logging.getLogger("JournalAI.Quota")

FREE_INSIGHT_LIMIT = Config.FREE_INSIGHT_LIMIT


def remaining_free(record: SubscriptionRecord, limit: int = FREE_INSIGHT_LIMIT) -> Optional[int]:
    """Free generations left, or None for unlimited tiers."""
    if record.is_premium:
        return None
    return max(0, limit - record.free_insights_used)


class TierQuotaGate:
    """Read-only allow/deny decisions over subscription records."""

    def __init__(
        self,
        subscriptions: SubscriptionsRepository,
        failure_policy: QuotaFailurePolicy = QuotaFailurePolicy.AVAILABILITY_OVER_CONSISTENCY,
        free_limit: int = FREE_INSIGHT_LIMIT,
    ) -> None:
        self._subscriptions = subscriptions
        self.failure_policy = failure_policy
        self.free_limit = free_limit

    def evaluate(self, record: SubscriptionRecord) -> UsagePermission:
        if record.is_premium:
            return UsagePermission(
                allowed=True,
                reason=PermissionReason.PREMIUM_ACCESS,
                tier=record.subscription_status,
            )

        if record.free_insights_used < self.free_limit:
            return UsagePermission(
                allowed=True,
                reason=PermissionReason.FREE_QUOTA_AVAILABLE,
                remaining=self.free_limit - record.free_insights_used,
                tier=record.subscription_status,
            )

        return UsagePermission(
            allowed=False,
            reason=PermissionReason.FREE_QUOTA_EXCEEDED,
            remaining=0,
            tier=record.subscription_status,
        )

    async def can_generate(self, principal: Principal) -> UsagePermission:
        try:
            record = await self._subscriptions.get(principal.id)
        except Exception as exc:
            if self.failure_policy is QuotaFailurePolicy.CONSISTENCY_OVER_AVAILABILITY:
                logger.error(
                    "Subscription lookup failed for %s, refusing generation: %s",
                    mask_user_id(principal.id), exc,
                )
                raise ServiceUnavailable("Unable to verify your subscription right now") from exc

            logger.warning(
                "Subscription lookup failed for %s, allowing generation: %s",
                mask_user_id(principal.id), exc,
            )
            return UsagePermission(allowed=True, reason=PermissionReason.ERROR_FALLBACK)

        permission = self.evaluate(record or SubscriptionRecord.default_for(principal.id))
        logger.info(
            "Quota check for %s: %s", mask_user_id(principal.id), permission.reason.value,
        )
        return permission

    async def tier_for(self, principal: Principal) -> SubscriptionStatus:
        """Tier used to pick a model for ungated work. Store errors mean free."""
        try:
            record = await self._subscriptions.get(principal.id)
        except Exception as exc:
            logger.warning("Tier lookup failed for %s, using free: %s", mask_user_id(principal.id), exc)
            return SubscriptionStatus.FREE
        return record.subscription_status if record else SubscriptionStatus.FREE

    async def get_subscription(self, principal: Principal) -> SubscriptionRecord:
        """Current record for usage reporting; store errors propagate."""
        try:
            record = await self._subscriptions.get(principal.id)
        except Exception as exc:
            logger.error("Failed to fetch usage stats for %s: %s", mask_user_id(principal.id), exc)
            raise DatabaseError("Failed to fetch usage stats") from exc
        return record or SubscriptionRecord.default_for(principal.id)
