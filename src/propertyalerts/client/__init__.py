"""Client-side notification agent."""

from .agent import NotificationAgent, resolve_target_url
from .analytics import InteractionReporter
from .platform import Notification, NotificationPlatform, WindowClient

__all__ = [
    "NotificationAgent",
    "resolve_target_url",
    "InteractionReporter",
    "Notification",
    "NotificationPlatform",
    "WindowClient",
]
