"""PropertyAlerts - saved-search notifications for property listings."""

__version__ = "0.1.0"

from .alerts import AlertWorker, DispatchScheduler, RunSummary
from .channels import EmailDispatcher, PushDispatcher
from .client import NotificationAgent
from .config import Settings, config
from .matching import MatchingEngine
from .models import Listing, NotificationEvent, NotificationKind, SearchFilter, Subscription
from .storage import (
    Database,
    ListingRepository,
    NotificationLedger,
    PriceBaselineStore,
    SubscriptionStore,
)

__all__ = [
    "AlertWorker",
    "DispatchScheduler",
    "RunSummary",
    "EmailDispatcher",
    "PushDispatcher",
    "NotificationAgent",
    "Settings",
    "config",
    "MatchingEngine",
    "Listing",
    "NotificationEvent",
    "NotificationKind",
    "SearchFilter",
    "Subscription",
    "Database",
    "ListingRepository",
    "NotificationLedger",
    "PriceBaselineStore",
    "SubscriptionStore",
]
