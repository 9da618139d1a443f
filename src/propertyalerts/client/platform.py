"""Device-side interfaces the notification agent drives.

A concrete platform wraps whatever the device offers for showing system
notifications and managing app windows (a browser's service-worker
registration and clients list, a desktop notification daemon, ...).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Notification:
    """A rendered platform notification."""

    title: str
    body: str
    tag: str
    data: dict[str, Any]
    icon: Optional[str] = None
    badge: Optional[str] = None
    image: Optional[str] = None
    color: Optional[str] = None
    actions: list[dict[str, str]] = field(default_factory=list)
    require_interaction: bool = False
    vibrate: tuple[int, ...] = ()

    @property
    def type(self) -> str:
        return self.data.get("type", "default")


class WindowClient(ABC):
    """An open application window or tab."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current URL of the window."""

    @abstractmethod
    async def focus(self) -> None:
        """Bring the window to the foreground."""

    @abstractmethod
    async def post_message(self, message: dict[str, Any]) -> None:
        """Deliver a message to the application running in the window."""


class NotificationPlatform(ABC):
    """System services available to the agent."""

    @abstractmethod
    async def show(self, notification: Notification) -> None:
        """Display a notification. Same tag replaces, new tag adds."""

    @abstractmethod
    async def close(self, notification: Notification) -> None:
        """Remove a notification from the screen."""

    @abstractmethod
    async def match_windows(self) -> list[WindowClient]:
        """All open application windows, including uncontrolled ones."""

    @abstractmethod
    async def open_window(self, url: str) -> None:
        """Open a new window or tab at url."""
