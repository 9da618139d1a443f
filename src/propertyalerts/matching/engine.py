"""Matching engine for finding new and price-dropped listings.

Given a saved search filter, the engine queries the listing store and
returns listings that are new since a point in time, or whose price has
fallen relative to a reference price. It reads listings and the filter
only and never writes to any store.
"""

import logging
from datetime import datetime
from typing import Mapping, Optional

from ..config import config
from ..models.listing import Listing
from ..models.notification import PriceDrop
from ..models.subscription import SearchFilter
from ..storage.listings import ListingRepository

logger = logging.getLogger(__name__)


class MatchingEngine:
    """Detect new matches and price drops for a search filter.

    Example:
        engine = MatchingEngine(ListingRepository(db))
        new = engine.find_new_matches(search, since=sub.last_checked_at)
        drops = engine.find_price_drops(search, engine.price_drop_candidates(search))
    """

    def __init__(
        self,
        listings: ListingRepository,
        drop_threshold_pct: Optional[float] = None,
        markup_pct: Optional[float] = None,
    ):
        """Initialize engine.

        Args:
            listings: Listing query interface
            drop_threshold_pct: Minimum drop percentage (default from config)
            markup_pct: Markup over current price used as the reference when
                        neither a baseline nor a max price exists
        """
        self.listings = listings
        self.drop_threshold_pct = (
            drop_threshold_pct if drop_threshold_pct is not None else config.price_drop_threshold_pct
        )
        self.markup_pct = markup_pct if markup_pct is not None else config.price_drop_markup_pct

    def find_new_matches(
        self,
        search: SearchFilter,
        since: datetime,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        """Live listings created at or after `since` that satisfy the filter.

        Args:
            search: Saved search predicate
            since: Lower bound on created_at (the subscription watermark)
            limit: Maximum results, newest first (default new_match_limit)

        Returns:
            Matching listings ordered by created_at descending
        """
        return self.listings.query(
            created_since=since,
            property_type=search.property_type,
            listing_type=search.listing_type,
            city=search.city,
            min_price=search.min_price,
            max_price=search.max_price,
            bedrooms=search.bedrooms,
            limit=limit or config.new_match_limit,
        )

    def price_drop_candidates(
        self, search: SearchFilter, limit: Optional[int] = None
    ) -> list[Listing]:
        """Live listings matching every predicate except the price range."""
        unpriced = search.without_price()
        return self.listings.query(
            property_type=unpriced.property_type,
            listing_type=unpriced.listing_type,
            city=unpriced.city,
            bedrooms=unpriced.bedrooms,
            limit=limit or config.price_drop_scan_limit,
        )

    def reference_price(self, search: SearchFilter, listing: Listing) -> int:
        """Stand-in for the price at first match when no baseline is stored.

        Uses the filter's max price if set, otherwise the current price
        inflated by the configured markup.
        """
        if search.max_price is not None:
            return search.max_price
        return round(listing.price * (1 + self.markup_pct / 100))

    def find_price_drops(
        self,
        search: SearchFilter,
        candidates: list[Listing],
        baselines: Optional[Mapping[str, int]] = None,
        limit: Optional[int] = None,
    ) -> list[PriceDrop]:
        """Find candidates whose price fell by at least the threshold.

        Args:
            search: Saved search predicate
            candidates: Listings to evaluate (see price_drop_candidates)
            baselines: First-seen prices by listing id. When given, only
                       listings with a baseline are evaluated. When None,
                       every candidate is compared with reference_price().
            limit: Maximum results (default price_drop_limit)

        Returns:
            Qualifying drops, largest drop first
        """
        drops = []
        for listing in candidates:
            if baselines is not None:
                if listing.id not in baselines:
                    continue
                old_price = baselines[listing.id]
            else:
                old_price = self.reference_price(search, listing)

            if old_price <= 0 or listing.price >= old_price:
                continue

            drop_pct = (old_price - listing.price) / old_price * 100
            if drop_pct >= self.drop_threshold_pct:
                drops.append(
                    PriceDrop(
                        listing=listing,
                        old_price=old_price,
                        new_price=listing.price,
                        drop_percent=round(drop_pct, 1),
                    )
                )

        drops.sort(key=lambda d: d.drop_percent, reverse=True)
        return drops[: limit or config.price_drop_limit]


def matches_filter(listing: Listing, search: SearchFilter) -> bool:
    """Pure predicate check, equivalent to the store-side query filters."""
    return listing.is_live and search.matches(listing)
