"""Saved search subscriptions and their filter predicate."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..clock import as_utc, utcnow
from ..errors import InvalidFilterError
from .listing import Listing, ListingType


class SearchFilter(BaseModel):
    """Structured predicate a listing must satisfy to match a saved search.

    Every field is optional; a missing field imposes no constraint.
    Stored filters may use either snake_case or camelCase keys.

    Example:
        search = SearchFilter(property_type="villa", city="Bali", max_price=5_000_000_000)
        search.matches(listing)
    """

    property_type: str | None = None
    listing_type: ListingType | None = None
    city: str | None = None
    min_price: int | None = Field(default=None, ge=0)
    max_price: int | None = Field(default=None, ge=0)
    bedrooms: int | None = Field(default=None, ge=0)

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "str_strip_whitespace": True,
        "extra": "ignore",
    }

    @field_validator("property_type", "city")
    @classmethod
    def blank_is_unset(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("property_type")
    @classmethod
    def lower(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @model_validator(mode="after")
    def check_price_range(self) -> "SearchFilter":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError(f"min_price {self.min_price} exceeds max_price {self.max_price}")
        return self

    def without_price(self) -> "SearchFilter":
        """Same predicate with the price range removed."""
        return self.model_copy(update={"min_price": None, "max_price": None})

    def matches(self, listing: Listing) -> bool:
        """Check if a listing satisfies every set predicate."""
        if self.property_type and listing.property_type != self.property_type:
            return False
        if self.listing_type and listing.listing_type != self.listing_type:
            return False
        if self.city and self.city.casefold() not in listing.city.casefold():
            return False
        if self.min_price is not None and listing.price < self.min_price:
            return False
        if self.max_price is not None and listing.price > self.max_price:
            return False
        if self.bedrooms is not None and listing.bedrooms != self.bedrooms:
            return False
        return True


class PushCredential(BaseModel):
    """Web Push subscription info returned by the browser."""

    endpoint: str
    p256dh: str
    auth: str

    def to_subscription_info(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


class Subscription(BaseModel):
    """A user's saved search plus delivery preferences.

    The filter is kept as the stored mapping and parsed on demand, so a
    malformed filter only affects the subscription that owns it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    filter: dict[str, Any] = Field(default_factory=dict)

    # Channels
    push_credential: PushCredential | None = None
    email: str | None = None
    email_enabled: bool = False
    locale: str = "en"

    # Tracking
    last_checked_at: datetime | None = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("last_checked_at", "created_at")
    @classmethod
    def aware(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    @property
    def wants_email(self) -> bool:
        return self.email_enabled and bool(self.email)

    def parse_filter(self) -> SearchFilter:
        """Parse the stored filter.

        Raises:
            InvalidFilterError: If the stored predicate is malformed
        """
        try:
            return SearchFilter.model_validate(self.filter)
        except ValidationError as e:
            raise InvalidFilterError(self.id, str(e)) from e
