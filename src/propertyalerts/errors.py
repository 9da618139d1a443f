"""Exceptions raised by the alert pipeline."""

from typing import Optional


class AlertPipelineError(Exception):
    """Base exception for pipeline errors.

    Attributes:
        component: Name of the component that raised the error
        message: Error description
    """

    def __init__(self, component: str, message: str):
        self.component = component
        self.message = message
        super().__init__(f"[{component}] {message}")


class InvalidFilterError(AlertPipelineError):
    """Raised when a saved search filter cannot be evaluated."""

    def __init__(self, subscription_id: Optional[str], message: str):
        self.subscription_id = subscription_id
        super().__init__("filter", message)


class SubscriptionNotFoundError(AlertPipelineError):
    """Raised when a manual run targets an unknown or inactive subscription."""

    def __init__(self, subscription_id: str):
        self.subscription_id = subscription_id
        super().__init__("subscriptions", f"No active subscription {subscription_id}")


class ChannelConfigurationError(AlertPipelineError):
    """Raised when a delivery channel is missing required settings."""

    def __init__(self, channel: str, missing: list[str]):
        self.missing = missing
        super().__init__(channel, f"Missing settings: {', '.join(missing)}")
