"""Durable subscription records."""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from ..clock import from_db, to_db, utcnow
from ..models.subscription import PushCredential, Subscription
from .database import Database

logger = logging.getLogger(__name__)


class SubscriptionStore:
    """Persist saved searches and their delivery channels.

    Subscriptions are never hard-deleted: unsubscribing sets active=0.

    Example:
        store = SubscriptionStore(db)
        sub = store.create("user-1", {"city": "Bali"}, email="a@b.c", email_enabled=True)
        for sub in store.list_active():
            ...
        store.advance_watermark(sub.id, now)
    """

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _subscription(row) -> Subscription:
        credential = row["push_credential"]
        return Subscription(
            id=row["id"],
            user_id=row["user_id"],
            filter=json.loads(row["filter"]),
            push_credential=PushCredential.model_validate_json(credential) if credential else None,
            email=row["email"],
            email_enabled=bool(row["email_enabled"]),
            locale=row["locale"],
            last_checked_at=from_db(row["last_checked_at"]),
            active=bool(row["active"]),
            created_at=from_db(row["created_at"]),
        )

    def save(self, subscription: Subscription) -> Subscription:
        """Insert or replace a subscription record."""
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO subscriptions
                (id, user_id, filter, push_credential, email, email_enabled, locale,
                 last_checked_at, active, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subscription.id,
                    subscription.user_id,
                    json.dumps(subscription.filter),
                    subscription.push_credential.model_dump_json()
                    if subscription.push_credential
                    else None,
                    subscription.email,
                    int(subscription.email_enabled),
                    subscription.locale,
                    to_db(subscription.last_checked_at) if subscription.last_checked_at else None,
                    int(subscription.active),
                    to_db(subscription.created_at),
                ),
            )
        return subscription

    def create(
        self,
        user_id: str,
        search_filter: dict[str, Any],
        push_credential: Optional[PushCredential] = None,
        email: Optional[str] = None,
        email_enabled: bool = False,
        locale: str = "en",
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Create a subscription when a user saves a search.

        The watermark starts at creation time so listings published before
        the search was saved are not reported as new.
        """
        now = now or utcnow()
        subscription = Subscription(
            user_id=user_id,
            filter=search_filter,
            push_credential=push_credential,
            email=email,
            email_enabled=email_enabled,
            locale=locale,
            last_checked_at=now,
            created_at=now,
        )
        self.save(subscription)
        logger.info(f"Created subscription {subscription.id} for user {user_id}")
        return subscription

    def get(self, subscription_id: str) -> Optional[Subscription]:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
            ).fetchone()
        return self._subscription(row) if row else None

    def list_active(self) -> list[Subscription]:
        """All subscriptions eligible for evaluation, oldest first."""
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM subscriptions WHERE active = 1 ORDER BY created_at, id"
            ).fetchall()
        return [self._subscription(row) for row in rows]

    def list_for_user(self, user_id: str) -> list[Subscription]:
        with self.db.connect() as conn:
            rows = conn.execute(
                "SELECT * FROM subscriptions WHERE user_id = ? ORDER BY created_at, id",
                (user_id,),
            ).fetchall()
        return [self._subscription(row) for row in rows]

    def list_all(self) -> list[Subscription]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM subscriptions ORDER BY created_at, id").fetchall()
        return [self._subscription(row) for row in rows]

    def advance_watermark(self, subscription_id: str, checked_at: datetime) -> bool:
        """Move last_checked_at forward to checked_at.

        An older checked_at leaves the watermark untouched.

        Returns:
            True if the watermark moved
        """
        with self.db.connect() as conn:
            cursor = conn.execute(
                """
                UPDATE subscriptions SET last_checked_at = ?
                WHERE id = ? AND (last_checked_at IS NULL OR last_checked_at < ?)
                """,
                (to_db(checked_at), subscription_id, to_db(checked_at)),
            )
            return cursor.rowcount > 0

    def clear_push_credential(self, subscription_id: str) -> Optional[Subscription]:
        """Drop an expired push endpoint.

        A subscription left without any delivery channel is deactivated.

        Returns:
            The updated subscription, or None if it does not exist
        """
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE subscriptions SET push_credential = NULL WHERE id = ?",
                (subscription_id,),
            )
            conn.execute(
                """
                UPDATE subscriptions SET active = 0
                WHERE id = ? AND (email_enabled = 0 OR email IS NULL)
                """,
                (subscription_id,),
            )
        subscription = self.get(subscription_id)
        if subscription and not subscription.active:
            logger.info(f"Subscription {subscription_id} deactivated: no delivery channel left")
        return subscription

    def update_push_credential(
        self, subscription_id: str, credential: PushCredential
    ) -> Optional[Subscription]:
        """Attach a new push endpoint and reactivate the subscription."""
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE subscriptions SET push_credential = ?, active = 1 WHERE id = ?",
                (credential.model_dump_json(), subscription_id),
            )
        return self.get(subscription_id)

    def set_email_enabled(self, subscription_id: str, enabled: bool) -> Optional[Subscription]:
        with self.db.connect() as conn:
            conn.execute(
                "UPDATE subscriptions SET email_enabled = ? WHERE id = ?",
                (int(enabled), subscription_id),
            )
        return self.get(subscription_id)

    def deactivate(self, subscription_id: str) -> bool:
        """Deactivate a subscription (user unsubscribed).

        Returns:
            True if an active subscription was deactivated
        """
        with self.db.connect() as conn:
            cursor = conn.execute(
                "UPDATE subscriptions SET active = 0 WHERE id = ? AND active = 1",
                (subscription_id,),
            )
            deactivated = cursor.rowcount > 0
        if deactivated:
            logger.info(f"Deactivated subscription {subscription_id}")
        return deactivated
