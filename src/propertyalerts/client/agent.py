"""Device-side agent that renders pushed alerts and routes clicks.

The agent is event driven. The hosting platform calls one handler per
lifecycle or notification event; handlers never run concurrently for the
same event type.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Union
from urllib.parse import urljoin, urlsplit

from ..clock import utcnow
from ..config import config
from .analytics import InteractionReporter
from .catalog import (
    ACTION_URL_TEMPLATES,
    BADGE_ICON,
    DEFAULT_TYPE,
    REQUIRE_INTERACTION_TYPES,
    VIBRATE_PATTERN,
    actions_for,
    style_for,
)
from .platform import Notification, NotificationPlatform

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "ASTRA Villa Realty"
DISMISS_ACTION = "dismiss"
LAST_NOTIFICATION_KEY = "last-notification"

PushPayload = Union[bytes, str, dict, None]


def resolve_target_url(action: Optional[str], data: dict[str, Any], origin: str) -> str:
    """Absolute URL a click should navigate to.

    Action templates are filled from the notification data. A missing
    template or placeholder falls back to the payload's own url.
    """
    fallback = data.get("url") or "/"
    template = ACTION_URL_TEMPLATES.get(action or "")
    path = fallback
    if template:
        try:
            path = template.format_map(data) or fallback
        except KeyError:
            logger.debug(f"Action {action!r} missing URL fields, using payload url")
    return urljoin(origin, path)


def _same_origin(url: str, origin: str) -> bool:
    a, b = urlsplit(url), urlsplit(origin)
    return (a.scheme, a.netloc) == (b.scheme, b.netloc)


class NotificationAgent:
    """Render push payloads and handle interaction with them."""

    def __init__(
        self,
        platform: NotificationPlatform,
        origin: Optional[str] = None,
        reporter: Optional[InteractionReporter] = None,
        namespace: Optional[str] = None,
        cache_version: Optional[str] = None,
        caches: Optional[dict[str, dict[str, Any]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.platform = platform
        self.origin = origin or config.app_base_url
        self.reporter = reporter
        self.namespace = namespace or config.namespace
        self.cache_version = cache_version or config.cache_version
        self.caches = caches if caches is not None else {}
        self._clock = clock
        self._last_stamp = 0
        self._pending: set[asyncio.Task] = set()

    @property
    def cache_name(self) -> str:
        return f"{self.namespace}-notifications-{self.cache_version}"

    # Lifecycle

    async def on_install(self):
        self._evict_stale_caches()
        self.caches.setdefault(self.cache_name, {})

    async def on_activate(self):
        evicted = self._evict_stale_caches()
        if evicted:
            logger.info(f"Evicted notification caches: {', '.join(evicted)}")

    def _evict_stale_caches(self) -> list[str]:
        prefix = f"{self.namespace}-notifications-"
        stale = [name for name in self.caches if name.startswith(prefix) and name != self.cache_name]
        for name in stale:
            del self.caches[name]
        return stale

    # Push

    def _next_stamp(self) -> int:
        """Millisecond timestamp, strictly increasing within a session."""
        stamp = int(self._clock().timestamp() * 1000)
        stamp = max(stamp, self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    @staticmethod
    def _decode(raw: PushPayload) -> dict[str, Any]:
        if raw is None:
            return {}
        if isinstance(raw, dict):
            return raw
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return {"body": text}
        return payload if isinstance(payload, dict) else {"body": text}

    def build_notification(self, payload: dict[str, Any]) -> Notification:
        raw_data = payload.get("data")
        data = dict(raw_data) if isinstance(raw_data, dict) else {}
        ntype = data.get("type") or DEFAULT_TYPE
        data["type"] = ntype
        stamp = self._next_stamp()
        data.setdefault("timestamp", stamp)
        style = style_for(ntype)

        return Notification(
            title=payload.get("title") or DEFAULT_TITLE,
            body=payload.get("body") or payload.get("message") or "",
            tag=f"{self.namespace}-{ntype}-{stamp}",
            data=data,
            icon=payload.get("icon") or style.icon,
            badge=BADGE_ICON,
            image=payload.get("image"),
            color=style.color,
            actions=[a._asdict() for a in actions_for(ntype)],
            require_interaction=ntype in REQUIRE_INTERACTION_TYPES,
            vibrate=VIBRATE_PATTERN,
        )

    async def on_push(self, raw: PushPayload) -> Notification:
        """Render an incoming push payload as a platform notification."""
        notification = self.build_notification(self._decode(raw))
        await self.platform.show(notification)

        cache = self.caches.setdefault(self.cache_name, {})
        cache[LAST_NOTIFICATION_KEY] = {
            "title": notification.title,
            "body": notification.body,
            "tag": notification.tag,
            "data": notification.data,
            "shownAt": self._clock().isoformat(),
        }
        return notification

    # Interaction

    async def on_notification_click(
        self, notification: Notification, action: Optional[str] = None
    ) -> Optional[str]:
        """Route a click. Returns the URL navigated to, or None for dismiss."""
        await self.platform.close(notification)
        self._report(notification, action or "click")

        if action == DISMISS_ACTION:
            return None

        target_url = resolve_target_url(action, notification.data, self.origin)
        for window in await self.platform.match_windows():
            if _same_origin(window.url, self.origin):
                await window.post_message({
                    "type": "NOTIFICATION_CLICK",
                    "data": notification.data,
                    "action": action,
                    "targetUrl": target_url,
                })
                await window.focus()
                return target_url

        await self.platform.open_window(target_url)
        return target_url

    async def on_notification_close(self, notification: Notification):
        self._report(notification, DISMISS_ACTION)

    async def on_message(self, message: dict[str, Any]) -> Any:
        """Answer a request from the foreground app."""
        kind = message.get("type")
        if kind == "GET_LAST_NOTIFICATION":
            return self.caches.get(self.cache_name, {}).get(LAST_NOTIFICATION_KEY)
        if kind == "CLEAR_NOTIFICATION_CACHE":
            self.caches.pop(self.cache_name, None)
            return True
        logger.debug(f"Ignoring unknown message type: {kind}")
        return None

    # Analytics

    def _report(self, notification: Notification, action: str):
        if self.reporter is None:
            return
        record = {
            "notificationId": notification.data.get("id") or notification.tag,
            "type": notification.type,
            "action": action,
            "timestamp": int(self._clock().timestamp() * 1000),
        }
        task = asyncio.create_task(self.reporter.report(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self):
        """Wait for in-flight interaction reports to settle."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def close(self):
        """Settle pending reports and release the analytics client."""
        await self.drain()
        if self.reporter is not None:
            await self.reporter.close()
