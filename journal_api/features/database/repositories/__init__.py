from journal_api.features.database.repositories.journals import JournalsRepository
from journal_api.features.database.repositories.preferences import PreferencesRepository
from journal_api.features.database.repositories.subscriptions import SubscriptionsRepository

__all__ = [
    "JournalsRepository",
    "PreferencesRepository",
    "SubscriptionsRepository",
]
