"""
Preferences Repository - prompt personalisation for a user.

Focus areas and personality type live in ``user_preferences``; the AI voice
(``coach`` or ``reflector``) lives on the ``users`` row. Missing rows and read
failures both fall back to the defaults.
"""

import logging
from typing import Any

import httpx

from journal_api.core.config import OutboundPolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.core.resilience import call_with_policy
from journal_api.features.insights.models import DEFAULT_PERSONALITY_TYPE, AIStyle, UserPreferences

logger = logging.getLogger("JournalAI.Database.Preferences")

PREFERENCES_TABLE = "user_preferences"
USERS_TABLE = "users"


class PreferencesRepository:
    """Repository for a user's focus areas, personality type and AI style."""

    def __init__(self, client: Any, policy: OutboundPolicy) -> None:
        self.client = client
        self.policy = policy

    async def get(self, user_id: str) -> UserPreferences:
        ai_style = await self.get_ai_style(user_id)
        try:
            result = await call_with_policy(
                lambda: self.client.table(PREFERENCES_TABLE)
                .select("focus_areas, personality_type")
                .eq("user_id", user_id)
                .limit(1)
                .execute(),
                self.policy,
                name="store.user_preferences.select",
                retry_on=(httpx.TransportError,),
            )
        except Exception as e:
            logger.warning(f"Error fetching preferences for {mask_user_id(user_id)}: {e}")
            return UserPreferences(ai_style=ai_style)

        row = result.data[0] if result.data else {}
        focus_areas = [str(area) for area in (row.get("focus_areas") or []) if area]
        return UserPreferences(
            focus_areas=focus_areas or ["general"],
            personality_type=row.get("personality_type") or DEFAULT_PERSONALITY_TYPE,
            ai_style=ai_style,
        )

    async def get_ai_style(self, user_id: str) -> AIStyle:
        """The user's chosen AI voice; ``reflector`` when unset or unreadable."""
        try:
            result = await call_with_policy(
                lambda: self.client.table(USERS_TABLE)
                .select("ai_style")
                .eq("id", user_id)
                .limit(1)
                .execute(),
                self.policy,
                name="store.users.ai_style",
                retry_on=(httpx.TransportError,),
            )
        except Exception as e:
            logger.warning(f"Error fetching AI style for {mask_user_id(user_id)}: {e}")
            return AIStyle.REFLECTOR

        row = result.data[0] if result.data else {}
        return AIStyle.parse(row.get("ai_style"))
