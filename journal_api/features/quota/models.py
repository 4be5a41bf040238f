"""Subscription and quota data shapes."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class SubscriptionStatus(str, Enum):
    FREE = "free"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: Any) -> "SubscriptionStatus":
        # Anything that is not explicitly premium is served as free
        if isinstance(value, str) and value.strip().lower() == cls.PREMIUM.value:
            return cls.PREMIUM
        return cls.FREE


class PermissionReason(str, Enum):
    PREMIUM_ACCESS = "premium_access"
    FREE_QUOTA_AVAILABLE = "free_quota_available"
    FREE_QUOTA_EXCEEDED = "free_quota_exceeded"
    ERROR_FALLBACK = "error_fallback"


@dataclass(frozen=True)
class SubscriptionRecord:
    """A row of the ``users`` table, or the default for users without one."""

    user_id: str
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE
    free_insights_used: int = 0
    updated_at: Optional[str] = None

    @classmethod
    def default_for(cls, user_id: str) -> "SubscriptionRecord":
        return cls(user_id=user_id)

    @classmethod
    def from_row(cls, user_id: str, row: Dict[str, Any]) -> "SubscriptionRecord":
        try:
            used = int(row.get("free_insights_used") or 0)
        except (TypeError, ValueError):
            used = 0
        return cls(
            user_id=user_id,
            subscription_status=SubscriptionStatus.parse(row.get("subscription_status")),
            free_insights_used=max(0, used),
            updated_at=row.get("updated_at"),
        )

    @property
    def is_premium(self) -> bool:
        return self.subscription_status is SubscriptionStatus.PREMIUM


@dataclass(frozen=True)
class UsagePermission:
    """Allow/deny decision for one generation request. Never persisted."""

    allowed: bool
    reason: PermissionReason
    remaining: Optional[int] = None
    # Tier seen by the gate; None when the store could not be read
    tier: Optional[SubscriptionStatus] = None
