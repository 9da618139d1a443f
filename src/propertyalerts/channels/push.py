"""Web Push delivery for alert notifications.

Sends VAPID-signed Web Push messages with pywebpush. Requires
PROPALERT_VAPID_PRIVATE_KEY; without it every send is reported as failed.
"""

import json
import logging
from typing import Any, Callable, Optional

from pywebpush import WebPushException, webpush

from ..clock import utcnow
from ..config import config
from ..errors import ChannelConfigurationError
from ..models.notification import NotificationEvent, NotificationKind, PushResult
from ..models.subscription import PushCredential
from .formatting import format_price, property_url, results_url

logger = logging.getLogger(__name__)

# Push service responses meaning the endpoint is gone for good
EXPIRED_STATUS_CODES = (404, 410)


def build_push_payload(
    title: str,
    body: str,
    data: dict[str, Any],
    icon: Optional[str] = None,
    image: Optional[str] = None,
) -> dict[str, Any]:
    """Build the JSON object the client notification agent receives.

    `data` must carry at least type, url and timestamp. Without an icon the
    agent picks one from its per-type style table.
    """
    missing = [k for k in ("type", "url", "timestamp") if k not in data]
    if missing:
        raise ValueError(f"Push data missing required keys: {missing}")
    payload: dict[str, Any] = {"title": title, "body": body, "data": data}
    if icon:
        payload["icon"] = icon
    if image:
        payload["image"] = image
    return payload


def compose_alert_push(
    kind: NotificationKind,
    events: list[NotificationEvent],
    base_url: Optional[str] = None,
    locale: str = "en",
) -> tuple[str, str, dict[str, Any], Optional[str]]:
    """Summarise one kind of event for a subscription as a single push.

    A single event deep-links to its property; several events link to the
    saved search results.

    Returns:
        (title, body, data, image) tuple
    """
    if not events:
        raise ValueError("compose_alert_push needs at least one event")
    base_url = base_url or config.app_base_url
    first = events[0]
    timestamp = int(utcnow().timestamp() * 1000)

    if len(events) == 1:
        meta = first.metadata
        title = first.title
        body = first.message
        data = {
            "type": kind.value,
            "url": property_url(base_url, first.listing_id),
            "id": first.id,
            "propertyId": first.listing_id,
            "timestamp": timestamp,
        }
        return title, body, data, meta.get("image_url")

    count = len(events)
    if kind is NotificationKind.PRICE_DROP:
        title = f"Price drops on {count} properties you follow"
        best = max(events, key=lambda e: e.metadata.get("drop_percent", 0))
        body = (
            f"{best.metadata.get('listing_title', 'A property')} is now "
            f"{format_price(best.metadata.get('new_price', 0), locale)} "
            f"(-{best.metadata.get('drop_percent', 0)}%) and {count - 1} more"
        )
    else:
        title = f"{count} new properties match your search"
        body = ", ".join(e.metadata.get("listing_title", e.listing_id) for e in events[:3])
        if count > 3:
            body += f" and {count - 3} more"

    data = {
        "type": kind.value,
        "url": results_url(base_url, first.subscription_id),
        "id": first.subscription_id,
        "timestamp": timestamp,
    }
    return title, body, data, None


class PushDispatcher:
    """Deliver push notifications to browser push endpoints.

    Example:
        push = PushDispatcher()
        result = push.send(credential, "Price drop", "Villa Ubud is now Rp 880M",
                           {"type": "price_drop", "url": "...", "timestamp": 0})
        if result is PushResult.EXPIRED:
            store.clear_push_credential(sub.id)
    """

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        ttl: Optional[int] = None,
        transport: Callable[..., Any] = webpush,
        require_config: bool = False,
    ):
        """Initialize dispatcher with VAPID settings.

        Args:
            vapid_private_key: VAPID private key (default from config)
            vapid_subject: VAPID "sub" claim, a mailto: or https: URL
            ttl: Seconds the push service keeps an undelivered message
            transport: Function performing the Web Push request
            require_config: Raise if the VAPID key is missing instead of
                            failing every send

        Raises:
            ChannelConfigurationError: If require_config and no key is set
        """
        self.vapid_private_key = vapid_private_key or config.vapid_private_key
        self.vapid_subject = vapid_subject or config.vapid_subject
        self.ttl = ttl if ttl is not None else config.push_ttl_seconds
        self.transport = transport
        if require_config and not self.vapid_private_key:
            raise ChannelConfigurationError("push", ["vapid_private_key"])

    @property
    def is_configured(self) -> bool:
        return bool(self.vapid_private_key)

    def send(
        self,
        credential: PushCredential,
        title: str,
        body: str,
        data: dict[str, Any],
        image: Optional[str] = None,
    ) -> PushResult:
        """Send one push message.

        Returns:
            DELIVERED on success, EXPIRED if the push service reports the
            endpoint gone (404/410), FAILED for anything else
        """
        if not self.is_configured:
            logger.warning("VAPID key not configured, skipping push")
            return PushResult.FAILED

        payload = build_push_payload(title, body, data, image=image)
        try:
            self.transport(
                subscription_info=credential.to_subscription_info(),
                data=json.dumps(payload),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as e:
            status = e.response.status_code if e.response is not None else None
            if status in EXPIRED_STATUS_CODES:
                logger.info(f"Push endpoint expired ({status}): {credential.endpoint[:60]}")
                return PushResult.EXPIRED
            logger.warning(f"Push rejected ({status}): {e}")
            return PushResult.FAILED
        except Exception as e:
            logger.warning(f"Push request failed: {e}")
            return PushResult.FAILED

        logger.debug(f"Push delivered: {title}")
        return PushResult.DELIVERED
