"""Delivery channels for alert notifications."""

from .email import EmailDispatcher, render_alert_email
from .formatting import format_price
from .push import PushDispatcher, build_push_payload, compose_alert_push

__all__ = [
    "EmailDispatcher",
    "PushDispatcher",
    "build_push_payload",
    "compose_alert_push",
    "format_price",
    "render_alert_email",
]
