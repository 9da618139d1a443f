"""Append-only log of notifications already sent.

The ledger is the only source of truth for "has this user already been
told about this listing today". Uniqueness is enforced by the table's
UNIQUE constraint, so concurrent or overlapping runs cannot both insert
the same event.
"""

import json
import logging
from datetime import datetime
from typing import Optional

from ..clock import calendar_day, from_db, to_db
from ..config import config
from ..models.notification import LedgerInsert, NotificationEvent, NotificationKind
from .database import Database

logger = logging.getLogger(__name__)


class NotificationLedger:
    """Idempotency log for notification events.

    Example:
        ledger = NotificationLedger(db)
        if ledger.insert_if_absent(event) is LedgerInsert.INSERTED:
            dispatch(event)
    """

    def __init__(self, db: Database, tz_name: Optional[str] = None):
        """Initialize the ledger.

        Args:
            db: Database holding the notification_events table
            tz_name: Timezone whose calendar day scopes the dedup key.
                     Defaults to the configured ledger_timezone.
        """
        self.db = db
        self.tz_name = tz_name or config.ledger_timezone

    def insert_if_absent(self, event: NotificationEvent) -> LedgerInsert:
        """Atomically record an event unless its idempotency key exists.

        Returns:
            LedgerInsert.INSERTED if this call recorded the event,
            LedgerInsert.DUPLICATE if the key was already present
        """
        key = event.idempotency_key(self.tz_name)
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO notification_events
                (id, user_id, subscription_id, kind, listing_id, notify_day,
                 title, message, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, kind, listing_id, notify_day) DO NOTHING
                """,
                (
                    event.id,
                    key.user_id,
                    event.subscription_id,
                    key.kind.value,
                    key.listing_id,
                    key.day.isoformat(),
                    event.title,
                    event.message,
                    json.dumps(event.metadata),
                    to_db(event.created_at),
                ),
            )
            inserted = cursor.rowcount == 1

        if inserted:
            return LedgerInsert.INSERTED
        logger.debug(f"Already notified: {key}")
        return LedgerInsert.DUPLICATE

    def was_notified(
        self,
        user_id: str,
        kind: NotificationKind,
        listing_id: str,
        on: datetime,
    ) -> bool:
        day = calendar_day(on, self.tz_name).isoformat()
        with self.db.connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM notification_events
                WHERE user_id = ? AND kind = ? AND listing_id = ? AND notify_day = ?
                """,
                (user_id, NotificationKind(kind).value, listing_id, day),
            ).fetchone()
        return row is not None

    def list_for_user(
        self, user_id: str, since: Optional[datetime] = None, limit: int = 100
    ) -> list[NotificationEvent]:
        """Recent events for a user, newest first."""
        query = "SELECT * FROM notification_events WHERE user_id = ?"
        params: list = [user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(to_db(since))
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        with self.db.connect() as conn:
            rows = conn.execute(query, params).fetchall()

        return [
            NotificationEvent(
                id=row["id"],
                user_id=row["user_id"],
                subscription_id=row["subscription_id"],
                kind=NotificationKind(row["kind"]),
                listing_id=row["listing_id"],
                title=row["title"],
                message=row["message"],
                metadata=json.loads(row["metadata"]),
                created_at=from_db(row["created_at"]),
            )
            for row in rows
        ]

    def count(self, subscription_id: Optional[str] = None) -> int:
        with self.db.connect() as conn:
            if subscription_id:
                return conn.execute(
                    "SELECT COUNT(*) FROM notification_events WHERE subscription_id = ?",
                    (subscription_id,),
                ).fetchone()[0]
            return conn.execute("SELECT COUNT(*) FROM notification_events").fetchone()[0]

    def prune_older_than(self, cutoff: datetime) -> int:
        """Delete events created before cutoff.

        Returns:
            Number of rows removed
        """
        with self.db.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM notification_events WHERE created_at < ?",
                (to_db(cutoff),),
            )
            deleted = cursor.rowcount
        if deleted:
            logger.info(f"Pruned {deleted} ledger entries older than {cutoff.isoformat()}")
        return deleted
