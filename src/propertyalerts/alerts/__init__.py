"""Alert scheduling: per-run sweep and the periodic worker."""

from .scheduler import DispatchScheduler, RunSummary, SubscriptionOutcome
from .worker import AlertWorker

__all__ = ["DispatchScheduler", "RunSummary", "SubscriptionOutcome", "AlertWorker"]
