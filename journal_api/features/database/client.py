"""
Database Client - Unified Access to All Data Repositories

A thin wrapper over one Supabase async client that hands out the
domain-specific repositories. Constructed and owned by the application
context; there is no module-level instance.
"""

import logging
from typing import Any

from journal_api.core.config import OutboundPolicy
from journal_api.features.database.repositories.journals import JournalsRepository
from journal_api.features.database.repositories.preferences import PreferencesRepository
from journal_api.features.database.repositories.subscriptions import SubscriptionsRepository

logger = logging.getLogger("JournalAI.Database")


class DatabaseClient:
    """
    Unified database client providing access to all repositories.

    Usage:
        db = DatabaseClient(supabase_client, settings.STORE_POLICY)
        record = await db.subscriptions.get(user_id)
        entries = await db.journals.get_recent(user_id)
    """

    def __init__(self, client: Any, policy: OutboundPolicy) -> None:
        self.subscriptions = SubscriptionsRepository(client, policy)
        self.journals = JournalsRepository(client, policy)
        self.preferences = PreferencesRepository(client, policy)

        logger.info("Database client initialized with all repositories")