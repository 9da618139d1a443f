"""Read access to the marketplace listing table.

The marketplace owns this table. The alert pipeline only queries it;
`save`/`save_batch` exist for syncing a snapshot of the marketplace
into the local database.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from ..clock import from_db, to_db
from ..models.listing import LIVE_STATUSES, Listing, ListingType
from .database import Database

logger = logging.getLogger(__name__)

_UPSERT = """
    INSERT OR REPLACE INTO listings
    (id, title, price, property_type, listing_type, city, bedrooms, created_at, status, image_url)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _escape_like(value: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ListingRepository:
    """Query listings by status, creation time and search predicates.

    Example:
        repo = ListingRepository(db)
        fresh = repo.query(created_since=yesterday, city="Bali", limit=10)
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _row(listing: Listing) -> tuple:
        return (
            listing.id,
            listing.title,
            listing.price,
            listing.property_type,
            listing.listing_type.value,
            listing.city,
            listing.bedrooms,
            to_db(listing.created_at),
            listing.status,
            listing.image_url,
        )

    @staticmethod
    def _listing(row) -> Listing:
        return Listing(
            id=row["id"],
            title=row["title"],
            price=row["price"],
            property_type=row["property_type"],
            listing_type=ListingType(row["listing_type"]),
            city=row["city"],
            bedrooms=row["bedrooms"],
            created_at=from_db(row["created_at"]),
            status=row["status"],
            image_url=row["image_url"],
        )

    def save(self, listing: Listing) -> None:
        with self.db.connect() as conn:
            conn.execute(_UPSERT, self._row(listing))

    def save_batch(self, listings: list[Listing]) -> int:
        """Upsert multiple listings.

        Returns:
            Number of listings saved
        """
        if not listings:
            return 0
        with self.db.connect() as conn:
            conn.executemany(_UPSERT, [self._row(l) for l in listings])
        logger.info(f"Synced {len(listings)} listings")
        return len(listings)

    def get(self, listing_id: str) -> Optional[Listing]:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM listings WHERE id = ?", (listing_id,)).fetchone()
        return self._listing(row) if row else None

    def query(
        self,
        statuses: Sequence[str] = LIVE_STATUSES,
        created_since: Optional[datetime] = None,
        property_type: Optional[str] = None,
        listing_type: Optional[ListingType] = None,
        city: Optional[str] = None,
        min_price: Optional[int] = None,
        max_price: Optional[int] = None,
        bedrooms: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        """Query listings with filters, newest first.

        Args:
            statuses: Accepted listing statuses
            created_since: Only listings created at or after this time
            property_type: Exact property type
            listing_type: Sale or rent
            city: Case-insensitive substring of the city name
            min_price: Minimum price
            max_price: Maximum price
            bedrooms: Exact bedroom count
            limit: Maximum number of results

        Returns:
            Matching listings ordered by created_at descending
        """
        conditions = []
        params: list = []

        if statuses:
            placeholders = ", ".join("?" for _ in statuses)
            conditions.append(f"status IN ({placeholders})")
            params.extend(statuses)

        if created_since is not None:
            conditions.append("created_at >= ?")
            params.append(to_db(created_since))

        if property_type:
            conditions.append("property_type = ?")
            params.append(property_type.lower())

        if listing_type:
            conditions.append("listing_type = ?")
            params.append(ListingType(listing_type).value)

        if city:
            conditions.append("LOWER(city) LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(city.lower())}%")

        if min_price is not None:
            conditions.append("price >= ?")
            params.append(min_price)

        if max_price is not None:
            conditions.append("price <= ?")
            params.append(max_price)

        if bedrooms is not None:
            conditions.append("bedrooms = ?")
            params.append(bedrooms)

        query = "SELECT * FROM listings"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at DESC, id"
        if limit:
            query += f" LIMIT {int(limit)}"

        with self.db.connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [self._listing(row) for row in rows]

    def count(self) -> int:
        with self.db.connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM listings").fetchone()[0]
