"""
Journals Repository - recent ``journal_entries`` used as prompt context.

History only enriches a prompt, so failures degrade to an empty list.
"""

import logging
from typing import Any, List

import httpx

from journal_api.core.config import OutboundPolicy
from journal_api.core.logging_utils import mask_user_id
from journal_api.core.resilience import call_with_policy
from journal_api.features.insights.models import JournalEntry

logger = logging.getLogger("JournalAI.Database.Journals")

ENTRIES_TABLE = "journal_entries"


class JournalsRepository:
    """Repository for reading a user's journal history."""

    def __init__(self, client: Any, policy: OutboundPolicy) -> None:
        self.client = client
        self.policy = policy

    async def get_recent(self, user_id: str, limit: int = 3) -> List[JournalEntry]:
        """Most recent entries first."""
        try:
            result = await call_with_policy(
                lambda: self.client.table(ENTRIES_TABLE)
                .select("id, content, mood_rating, created_at")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute(),
                self.policy,
                name="store.journal_entries.select",
                retry_on=(httpx.TransportError,),
            )
        except Exception as e:
            logger.warning(f"Error fetching recent entries for {mask_user_id(user_id)}: {e}")
            return []

        entries = []
        for row in result.data or []:
            content = row.get("content")
            if not content:
                continue
            entries.append(
                JournalEntry(
                    id=row.get("id"),
                    content=content,
                    mood_rating=row.get("mood_rating"),
                    created_at=row.get("created_at"),
                )
            )
        return entries
