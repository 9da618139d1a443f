"""Per-type presentation tables for the client notification agent.

Adding an alert type means adding rows here; the agent has no
type-specific branches.
"""

from typing import NamedTuple


class NotificationStyle(NamedTuple):
    icon: str
    color: str


class NotificationAction(NamedTuple):
    action: str
    title: str


DEFAULT_TYPE = "default"

NOTIFICATION_STYLES: dict[str, NotificationStyle] = {
    "price_drop": NotificationStyle("/icons/price-drop.png", "#16a34a"),
    "new_match": NotificationStyle("/icons/new-match.png", "#2563eb"),
    "message": NotificationStyle("/icons/message.png", "#7c3aed"),
    "viewing": NotificationStyle("/icons/viewing.png", "#ea580c"),
    "market": NotificationStyle("/icons/market.png", "#0891b2"),
    DEFAULT_TYPE: NotificationStyle("/icon-192.png", "#0f172a"),
}

NOTIFICATION_ACTIONS: dict[str, tuple[NotificationAction, NotificationAction]] = {
    "price_drop": (
        NotificationAction("view_property", "View Property"),
        NotificationAction("save", "Save for Later"),
    ),
    "new_match": (
        NotificationAction("view_property", "View Property"),
        NotificationAction("view_all", "See All Matches"),
    ),
    "message": (
        NotificationAction("reply", "Reply"),
        NotificationAction("read", "Read"),
    ),
    "viewing": (
        NotificationAction("confirm", "Confirm"),
        NotificationAction("reschedule", "Reschedule"),
    ),
    "market": (
        NotificationAction("view_report", "View Report"),
        NotificationAction("dismiss", "Dismiss"),
    ),
    DEFAULT_TYPE: (
        NotificationAction("view", "View"),
        NotificationAction("dismiss", "Dismiss"),
    ),
}

# Placeholders are filled from the notification's data payload
ACTION_URL_TEMPLATES: dict[str, str] = {
    "view_property": "/property/{propertyId}",
    "save": "/property/{propertyId}?action=save",
    "view_all": "{url}",
    "reply": "/messages/{messageId}?reply=1",
    "read": "/messages/{messageId}",
    "confirm": "/bookings/{bookingId}?action=confirm",
    "reschedule": "/bookings/{bookingId}/reschedule",
    "view_report": "/market",
}

# Types that stay on screen until the user acts on them
REQUIRE_INTERACTION_TYPES = frozenset({"viewing", "price_drop"})

VIBRATE_PATTERN = (100, 50, 100)
BADGE_ICON = "/icon-192.png"


def style_for(notification_type: str) -> NotificationStyle:
    return NOTIFICATION_STYLES.get(notification_type, NOTIFICATION_STYLES[DEFAULT_TYPE])


def actions_for(notification_type: str) -> tuple[NotificationAction, NotificationAction]:
    return NOTIFICATION_ACTIONS.get(notification_type, NOTIFICATION_ACTIONS[DEFAULT_TYPE])
