"""First-seen prices per (subscription, listing), used as price-drop reference."""

import logging
from datetime import datetime

from ..clock import to_db
from ..models.listing import Listing
from .database import Database

logger = logging.getLogger(__name__)


class PriceBaselineStore:
    """Remember the price a listing had when a subscription first saw it.

    A baseline is written once and never updated, so later runs compare the
    current price against the price at first match.
    """

    def __init__(self, db: Database):
        self.db = db

    def get_many(self, subscription_id: str, listing_ids: list[str]) -> dict[str, int]:
        """Baselines for the given listings; listings never seen are absent."""
        if not listing_ids:
            return {}
        placeholders = ", ".join("?" for _ in listing_ids)
        with self.db.connect() as conn:
            rows = conn.execute(
                f"""
                SELECT listing_id, first_seen_price FROM price_baselines
                WHERE subscription_id = ? AND listing_id IN ({placeholders})
                """,
                (subscription_id, *listing_ids),
            ).fetchall()
        return {row["listing_id"]: row["first_seen_price"] for row in rows}

    def record_first_seen(
        self, subscription_id: str, listings: list[Listing], seen_at: datetime
    ) -> int:
        """Store current prices for listings without a baseline.

        Returns:
            Number of new baselines written
        """
        if not listings:
            return 0
        with self.db.connect() as conn:
            before = conn.total_changes
            conn.executemany(
                """
                INSERT INTO price_baselines
                (subscription_id, listing_id, first_seen_price, first_seen_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (subscription_id, listing_id) DO NOTHING
                """,
                [(subscription_id, l.id, l.price, to_db(seen_at)) for l in listings],
            )
            written = conn.total_changes - before
        if written:
            logger.debug(f"Recorded {written} price baselines for {subscription_id}")
        return written
