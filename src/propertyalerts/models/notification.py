"""Notification events, dedup keys and delivery results."""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, Field, field_validator

from ..clock import as_utc, calendar_day, utcnow
from .listing import Listing


class NotificationKind(str, Enum):
    """Event kinds detected by the matching engine."""

    NEW_MATCH = "new_match"
    PRICE_DROP = "price_drop"


class PushResult(str, Enum):
    DELIVERED = "delivered"
    EXPIRED = "expired"
    FAILED = "failed"


class EmailResult(str, Enum):
    OK = "ok"
    FAILED = "failed"


class LedgerInsert(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class IdempotencyKey(NamedTuple):
    """At most one notification per (user, kind, listing, day)."""

    user_id: str
    kind: NotificationKind
    listing_id: str
    day: date


@dataclass(frozen=True)
class PriceDrop:
    """A listing whose current price is below its reference price."""

    listing: Listing
    old_price: int
    new_price: int
    drop_percent: float

    @property
    def drop_amount(self) -> int:
        return self.old_price - self.new_price


class NotificationEvent(BaseModel):
    """A detected event, logged to the ledger before it is dispatched."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    subscription_id: str
    kind: NotificationKind
    listing_id: str
    title: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def aware(cls, v: datetime) -> datetime:
        return as_utc(v)

    def idempotency_key(self, tz_name: str) -> IdempotencyKey:
        return IdempotencyKey(
            user_id=self.user_id,
            kind=self.kind,
            listing_id=self.listing_id,
            day=calendar_day(self.created_at, tz_name),
        )
