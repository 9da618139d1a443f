"""Tests for NotificationLedger."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from conftest import T0

from propertyalerts.models import LedgerInsert, NotificationEvent, NotificationKind
from propertyalerts.storage import NotificationLedger


def make_event(
    listing_id: str = "listing-1",
    kind: NotificationKind = NotificationKind.NEW_MATCH,
    created_at: datetime = T0,
    user_id: str = "user-1",
    subscription_id: str = "sub-1",
) -> NotificationEvent:
    return NotificationEvent(
        user_id=user_id,
        subscription_id=subscription_id,
        kind=kind,
        listing_id=listing_id,
        title="New villa in Bali",
        message="Villa Ubud - Rp 1B",
        metadata={"price": 1_000_000_000},
        created_at=created_at,
    )


class TestInsertIfAbsent:
    """Test the dedup primitive."""

    def test_second_insert_same_day_is_duplicate(self, ledger: NotificationLedger):
        assert ledger.insert_if_absent(make_event()) is LedgerInsert.INSERTED
        assert ledger.insert_if_absent(make_event(created_at=T0 + timedelta(hours=5))) is LedgerInsert.DUPLICATE
        assert ledger.count() == 1

    def test_next_day_is_new(self, ledger):
        ledger.insert_if_absent(make_event())

        result = ledger.insert_if_absent(make_event(created_at=T0 + timedelta(days=1)))

        assert result is LedgerInsert.INSERTED

    def test_day_follows_ledger_timezone(self, ledger):
        """16:59 and 17:01 UTC fall on different days in Jakarta (UTC+7)."""
        before_midnight = datetime(2026, 3, 2, 16, 59, tzinfo=timezone.utc)
        after_midnight = datetime(2026, 3, 2, 17, 1, tzinfo=timezone.utc)

        assert ledger.insert_if_absent(make_event(created_at=before_midnight)) is LedgerInsert.INSERTED
        assert ledger.insert_if_absent(make_event(created_at=after_midnight)) is LedgerInsert.INSERTED

    def test_key_components_are_independent(self, ledger):
        ledger.insert_if_absent(make_event())

        assert ledger.insert_if_absent(make_event(kind=NotificationKind.PRICE_DROP)) is LedgerInsert.INSERTED
        assert ledger.insert_if_absent(make_event(listing_id="listing-2")) is LedgerInsert.INSERTED
        assert ledger.insert_if_absent(make_event(user_id="user-2")) is LedgerInsert.INSERTED

    def test_key_is_per_user_not_per_subscription(self, ledger):
        ledger.insert_if_absent(make_event(subscription_id="sub-1"))

        result = ledger.insert_if_absent(make_event(subscription_id="sub-2"))

        assert result is LedgerInsert.DUPLICATE

    def test_concurrent_inserts_record_once(self, ledger):
        events = [make_event() for _ in range(8)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(ledger.insert_if_absent, events))

        assert results.count(LedgerInsert.INSERTED) == 1
        assert ledger.count() == 1


class TestQueries:
    """Test ledger lookups and retention."""

    def test_was_notified(self, ledger):
        ledger.insert_if_absent(make_event())

        assert ledger.was_notified("user-1", NotificationKind.NEW_MATCH, "listing-1", T0)
        assert not ledger.was_notified("user-1", "price_drop", "listing-1", T0)
        assert not ledger.was_notified("user-1", NotificationKind.NEW_MATCH, "listing-1", T0 + timedelta(days=1))

    def test_list_for_user_newest_first(self, ledger):
        ledger.insert_if_absent(make_event(listing_id="old", created_at=T0))
        ledger.insert_if_absent(make_event(listing_id="new", created_at=T0 + timedelta(hours=1)))
        ledger.insert_if_absent(make_event(listing_id="other", user_id="user-2"))

        events = ledger.list_for_user("user-1")

        assert [e.listing_id for e in events] == ["new", "old"]
        assert events[0].metadata == {"price": 1_000_000_000}
        assert events[0].created_at == T0 + timedelta(hours=1)

    def test_count_by_subscription(self, ledger):
        ledger.insert_if_absent(make_event(listing_id="a", subscription_id="sub-1"))
        ledger.insert_if_absent(make_event(listing_id="b", subscription_id="sub-2"))

        assert ledger.count("sub-1") == 1
        assert ledger.count() == 2

    def test_prune_older_than(self, ledger):
        ledger.insert_if_absent(make_event(listing_id="old", created_at=T0 - timedelta(days=40)))
        ledger.insert_if_absent(make_event(listing_id="recent", created_at=T0))

        removed = ledger.prune_older_than(T0 - timedelta(days=30))

        assert removed == 1
        assert [e.listing_id for e in ledger.list_for_user("user-1")] == ["recent"]
