"""SQLite connection handling and schema for the alert pipeline."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..config import config

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS listings (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        price INTEGER NOT NULL,
        property_type TEXT NOT NULL,
        listing_type TEXT NOT NULL,
        city TEXT NOT NULL,
        bedrooms INTEGER,
        created_at TEXT NOT NULL,
        status TEXT NOT NULL,
        image_url TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_listings_status_created ON listings(status, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_listings_type_price ON listings(property_type, price)",
    """
    CREATE TABLE IF NOT EXISTS subscriptions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        filter JSON NOT NULL,
        push_credential JSON,
        email TEXT,
        email_enabled INTEGER NOT NULL DEFAULT 0,
        locale TEXT NOT NULL DEFAULT 'en',
        last_checked_at TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_active ON subscriptions(active)",
    "CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON subscriptions(user_id)",
    # The unique constraint is the dedup key; inserts that hit it are skipped
    """
    CREATE TABLE IF NOT EXISTS notification_events (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        subscription_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        listing_id TEXT NOT NULL,
        notify_day TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        metadata JSON NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (user_id, kind, listing_id, notify_day)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_created ON notification_events(created_at)",
    """
    CREATE TABLE IF NOT EXISTS price_baselines (
        subscription_id TEXT NOT NULL,
        listing_id TEXT NOT NULL,
        first_seen_price INTEGER NOT NULL,
        first_seen_at TEXT NOT NULL,
        PRIMARY KEY (subscription_id, listing_id)
    )
    """,
)


class Database:
    """Owns the SQLite file and hands out short-lived connections.

    Example:
        db = Database(Path("/tmp/alerts.db"))
        with db.connect() as conn:
            conn.execute("SELECT COUNT(*) FROM listings")
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: float = 30.0):
        """Initialize the database and create tables.

        Args:
            db_path: Path to the SQLite file. Defaults to the configured db_path.
            timeout: Seconds to wait on a locked database
        """
        self.db_path = Path(db_path) if db_path else config.db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout
        self._init_db()

    def _init_db(self) -> None:
        with self.connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)
        logger.debug(f"Schema ready at {self.db_path}")

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
