"""Data models for PropertyAlerts."""

from propertyalerts.models.listing import LIVE_STATUSES, Listing, ListingType
from propertyalerts.models.notification import (
    EmailResult,
    IdempotencyKey,
    LedgerInsert,
    NotificationEvent,
    NotificationKind,
    PriceDrop,
    PushResult,
)
from propertyalerts.models.subscription import PushCredential, SearchFilter, Subscription

__all__ = [
    "LIVE_STATUSES",
    "Listing",
    "ListingType",
    "SearchFilter",
    "PushCredential",
    "Subscription",
    "NotificationKind",
    "NotificationEvent",
    "IdempotencyKey",
    "PriceDrop",
    "PushResult",
    "EmailResult",
    "LedgerInsert",
]
