"""
Database Feature Module - Supabase data access layer.

Usage:
    from journal_api.features.database import DatabaseClient

    db = DatabaseClient(supabase_client, settings.STORE_POLICY)
    record = await db.subscriptions.get(user_id)
"""

from journal_api.features.database.client import DatabaseClient

__all__ = ["DatabaseClient"]
