"""Storage modules for the alert pipeline.

This package provides SQLite-backed access to listings, subscriptions,
the notification ledger and first-seen price baselines.
"""

from .baselines import PriceBaselineStore
from .database import Database
from .ledger import NotificationLedger
from .listings import ListingRepository
from .subscriptions import SubscriptionStore

__all__ = [
    "Database",
    "ListingRepository",
    "SubscriptionStore",
    "NotificationLedger",
    "PriceBaselineStore",
]
