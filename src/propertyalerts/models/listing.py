"""Listing data model."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from ..clock import as_utc

# Listing statuses that count as live inventory
LIVE_STATUSES = ("active", "available")


class ListingType(str, Enum):
    """Whether a property is offered for sale or for rent."""

    SALE = "sale"
    RENT = "rent"


class Listing(BaseModel):
    """A property listing as read from the marketplace store.

    The alert pipeline treats listings as read-only; they are inserted
    and updated by the marketplace itself.
    """

    # Identification
    id: str = Field(..., description="Unique listing identifier")
    title: str = Field(..., description="Listing headline")

    # Pricing
    price: int = Field(..., ge=0, description="Asking price in IDR")

    # Property details
    property_type: str = Field(..., description="villa, house, apartment, land, ...")
    listing_type: ListingType = Field(default=ListingType.SALE, description="Sale or rent")
    city: str = Field(..., description="City name")
    bedrooms: int | None = Field(default=None, ge=0, description="Number of bedrooms")

    # Listing info
    created_at: datetime = Field(..., description="When the listing was published")
    status: str = Field(default="active", description="Marketplace status")
    image_url: str | None = Field(default=None, description="Cover photo URL")

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @field_validator("property_type", "status")
    @classmethod
    def lower(cls, v: str) -> str:
        return v.lower()

    @field_validator("created_at")
    @classmethod
    def aware(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES
