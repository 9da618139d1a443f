"""Pytest fixtures and test utilities."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pywebpush import WebPushException

from propertyalerts.channels import PushDispatcher
from propertyalerts.matching import MatchingEngine
from propertyalerts.models import EmailResult, Listing, ListingType, PushCredential
from propertyalerts.storage import (
    Database,
    ListingRepository,
    NotificationLedger,
    PriceBaselineStore,
    SubscriptionStore,
)

# 09:00 in Jakarta
T0 = datetime(2026, 3, 2, 2, 0, tzinfo=timezone.utc)


class FakePushTransport:
    """Stands in for pywebpush.webpush and records every call."""

    def __init__(self, fail_status: int | None = None, error: Exception | None = None):
        self.calls: list[dict] = []
        self.fail_status = fail_status
        self.error = error

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if self.fail_status is not None:
            response = SimpleNamespace(status_code=self.fail_status, text="gone")
            raise WebPushException("Push failed", response=response)
        return SimpleNamespace(status_code=201)


class FakeEmailDispatcher:
    """Records emails instead of talking to SMTP."""

    def __init__(self, result: EmailResult = EmailResult.OK):
        self.sent: list[tuple[str, str, str]] = []
        self.result = result

    def send(self, to_address: str, subject: str, html: str) -> EmailResult:
        self.sent.append((to_address, subject, html))
        return self.result


@pytest.fixture
def db(tmp_path) -> Database:
    """Empty database in a temp directory."""
    return Database(tmp_path / "alerts.db")


@pytest.fixture
def listings(db: Database) -> ListingRepository:
    return ListingRepository(db)


@pytest.fixture
def subscriptions(db: Database) -> SubscriptionStore:
    return SubscriptionStore(db)


@pytest.fixture
def ledger(db: Database) -> NotificationLedger:
    return NotificationLedger(db, tz_name="Asia/Jakarta")


@pytest.fixture
def baselines(db: Database) -> PriceBaselineStore:
    return PriceBaselineStore(db)


@pytest.fixture
def engine(listings: ListingRepository) -> MatchingEngine:
    """Engine with the default 10% threshold and 15% markup."""
    return MatchingEngine(listings, drop_threshold_pct=10.0, markup_pct=15.0)


@pytest.fixture
def make_listing():
    """Factory for listings with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Listing:
        counter["n"] += 1
        fields = {
            "id": f"listing-{counter['n']}",
            "title": f"Listing {counter['n']}",
            "price": 1_000_000_000,
            "property_type": "villa",
            "listing_type": ListingType.SALE,
            "city": "Bali",
            "bedrooms": 3,
            "created_at": T0,
            "status": "active",
        }
        fields.update(overrides)
        return Listing(**fields)

    return _make


@pytest.fixture
def credential() -> PushCredential:
    return PushCredential(
        endpoint="https://push.example.com/send/abc123",
        p256dh="BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
        auth="tBHItJI5svbpez7KI4CCXg",
    )


@pytest.fixture
def push_transport() -> FakePushTransport:
    return FakePushTransport()


@pytest.fixture
def push(push_transport: FakePushTransport) -> PushDispatcher:
    """Push dispatcher wired to the fake transport."""
    return PushDispatcher(
        vapid_private_key="test-vapid-key",
        vapid_subject="mailto:alerts@example.com",
        ttl=60,
        transport=push_transport,
    )


@pytest.fixture
def mailer() -> FakeEmailDispatcher:
    return FakeEmailDispatcher()


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)
