"""Dispatch scheduler: one sweep of every active subscription.

Each run fetches active subscriptions, detects new matches and price drops,
records every candidate event in the notification ledger and dispatches
only the events this run managed to insert. Subscriptions are processed
in isolated units of work with bounded parallelism; an error in one never
stops the others, and the watermark of every processed subscription
advances whatever happened.
"""

import asyncio
import functools
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from ..channels.email import EmailDispatcher, render_alert_email
from ..channels.formatting import format_price
from ..channels.push import PushDispatcher, compose_alert_push
from ..clock import as_utc, utcnow
from ..config import config
from ..errors import InvalidFilterError, SubscriptionNotFoundError
from ..matching.engine import MatchingEngine
from ..models.listing import Listing
from ..models.notification import (
    EmailResult,
    LedgerInsert,
    NotificationEvent,
    NotificationKind,
    PriceDrop,
    PushResult,
)
from ..models.subscription import SearchFilter, Subscription
from ..storage.baselines import PriceBaselineStore
from ..storage.database import Database
from ..storage.ledger import NotificationLedger
from ..storage.listings import ListingRepository
from ..storage.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionOutcome:
    """What happened to one subscription during a run."""

    subscription_id: str
    new_matches: int = 0
    price_drops: int = 0
    duplicates: int = 0
    pushes_delivered: int = 0
    pushes_failed: int = 0
    push_expired: bool = False
    emails_sent: int = 0
    emails_failed: int = 0
    error: Optional[str] = None


@dataclass
class RunSummary:
    """Counters for a whole run."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    subscriptions_checked: int = 0
    new_matches: int = 0
    price_drops: int = 0
    duplicates_skipped: int = 0
    pushes_delivered: int = 0
    pushes_failed: int = 0
    push_credentials_expired: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    errors: list[str] = field(default_factory=list)

    def add(self, outcome: SubscriptionOutcome) -> None:
        self.subscriptions_checked += 1
        self.new_matches += outcome.new_matches
        self.price_drops += outcome.price_drops
        self.duplicates_skipped += outcome.duplicates
        self.pushes_delivered += outcome.pushes_delivered
        self.pushes_failed += outcome.pushes_failed
        self.push_credentials_expired += int(outcome.push_expired)
        self.emails_sent += outcome.emails_sent
        self.emails_failed += outcome.emails_failed
        if outcome.error:
            self.errors.append(f"{outcome.subscription_id}: {outcome.error}")

    def as_dict(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data


def new_match_event(sub: Subscription, listing: Listing, now: datetime) -> NotificationEvent:
    return NotificationEvent(
        user_id=sub.user_id,
        subscription_id=sub.id,
        kind=NotificationKind.NEW_MATCH,
        listing_id=listing.id,
        title=f"New {listing.property_type} in {listing.city}",
        message=f"{listing.title} - {format_price(listing.price, sub.locale)}",
        metadata={
            "listing_title": listing.title,
            "city": listing.city,
            "price": listing.price,
            "property_type": listing.property_type,
            "image_url": listing.image_url,
        },
        created_at=now,
    )


def price_drop_event(sub: Subscription, drop: PriceDrop, now: datetime) -> NotificationEvent:
    listing = drop.listing
    return NotificationEvent(
        user_id=sub.user_id,
        subscription_id=sub.id,
        kind=NotificationKind.PRICE_DROP,
        listing_id=listing.id,
        title=f"Price drop: {listing.title}",
        message=(
            f"Now {format_price(drop.new_price, sub.locale)}, "
            f"down {drop.drop_percent}% from {format_price(drop.old_price, sub.locale)}"
        ),
        metadata={
            "listing_title": listing.title,
            "city": listing.city,
            "price": listing.price,
            "old_price": drop.old_price,
            "new_price": drop.new_price,
            "drop_amount": drop.drop_amount,
            "drop_percent": drop.drop_percent,
            "image_url": listing.image_url,
        },
        created_at=now,
    )


class DispatchScheduler:
    """Periodic driver of the alert pipeline.

    Example:
        scheduler = DispatchScheduler.from_database(Database())
        summary = asyncio.run(scheduler.run_once())
        print(summary.new_matches, summary.pushes_delivered)
    """

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        ledger: NotificationLedger,
        engine: MatchingEngine,
        push: PushDispatcher,
        email: EmailDispatcher,
        baselines: Optional[PriceBaselineStore] = None,
        max_workers: Optional[int] = None,
        baseline_mode: Optional[str] = None,
        base_url: Optional[str] = None,
        initial_lookback: Optional[timedelta] = None,
    ):
        """Initialize scheduler with its collaborators.

        Args:
            subscriptions: Subscription store
            ledger: Notification ledger used for dedup
            engine: Matching engine
            push: Push channel
            email: Email channel
            baselines: First-seen price store, required for "first_seen" mode
            max_workers: Subscriptions processed concurrently
            baseline_mode: "first_seen" or "heuristic" (default from config)
            base_url: App URL used in deep links
            initial_lookback: Window for subscriptions never checked before
        """
        self.subscriptions = subscriptions
        self.ledger = ledger
        self.engine = engine
        self.push = push
        self.email = email
        self.baselines = baselines
        self.max_workers = max_workers or config.max_workers
        self.baseline_mode = baseline_mode or config.price_drop_baseline
        self.base_url = base_url or config.app_base_url
        self.initial_lookback = (
            initial_lookback
            if initial_lookback is not None
            else timedelta(hours=config.initial_lookback_hours)
        )
        if self.baseline_mode == "first_seen" and self.baselines is None:
            raise ValueError("first_seen baseline mode needs a PriceBaselineStore")

    @classmethod
    def from_database(
        cls,
        db: Database,
        push: Optional[PushDispatcher] = None,
        email: Optional[EmailDispatcher] = None,
        **kwargs,
    ) -> "DispatchScheduler":
        """Wire a scheduler with SQLite-backed stores and default channels."""
        return cls(
            subscriptions=SubscriptionStore(db),
            ledger=NotificationLedger(db),
            engine=MatchingEngine(ListingRepository(db)),
            push=push or PushDispatcher(),
            email=email or EmailDispatcher(),
            baselines=PriceBaselineStore(db),
            **kwargs,
        )

    async def run_once(self, now: Optional[datetime] = None) -> RunSummary:
        """Sweep every active subscription once.

        Args:
            now: Clock value for this run (defaults to the current UTC time).
                 Used for watermarks and the ledger's calendar day.

        Returns:
            RunSummary with counters and captured per-subscription errors
        """
        now = as_utc(now) if now else utcnow()
        summary = RunSummary(started_at=now)

        subscriptions = self.subscriptions.list_active()
        if not subscriptions:
            logger.info("No active subscriptions to check")
            summary.finished_at = utcnow()
            return summary

        logger.info(
            f"Checking {len(subscriptions)} subscriptions (workers={self.max_workers})"
        )
        semaphore = asyncio.Semaphore(self.max_workers)

        async def bounded(sub: Subscription) -> SubscriptionOutcome:
            async with semaphore:
                return await self._process(sub, now)

        outcomes = await asyncio.gather(*(bounded(sub) for sub in subscriptions))
        for outcome in outcomes:
            summary.add(outcome)

        summary.finished_at = utcnow()
        logger.info(
            f"Run complete: {summary.subscriptions_checked} subscriptions, "
            f"{summary.new_matches} new matches, {summary.price_drops} price drops, "
            f"{summary.duplicates_skipped} duplicates skipped, "
            f"{summary.pushes_delivered} pushes, {summary.emails_sent} emails, "
            f"{len(summary.errors)} errors"
        )
        return summary

    async def run_subscription(
        self, subscription_id: str, now: Optional[datetime] = None
    ) -> SubscriptionOutcome:
        """Process a single subscription immediately ("send now").

        Raises:
            SubscriptionNotFoundError: If the subscription is unknown or inactive
        """
        now = as_utc(now) if now else utcnow()
        sub = self.subscriptions.get(subscription_id)
        if sub is None or not sub.active:
            raise SubscriptionNotFoundError(subscription_id)
        return await self._process(sub, now)

    async def _process(self, sub: Subscription, now: datetime) -> SubscriptionOutcome:
        """Detect, dedup and dispatch for one subscription, then advance its watermark.

        Store access is blocking sqlite3, so it runs in the default executor
        and one slow subscription does not hold up the others.
        """
        outcome = SubscriptionOutcome(subscription_id=sub.id)
        loop = asyncio.get_running_loop()
        try:
            search = sub.parse_filter()
            fresh, outcome.duplicates = await loop.run_in_executor(
                None, self._detect_and_record, sub, search, now
            )

            outcome.new_matches = sum(1 for e in fresh if e.kind is NotificationKind.NEW_MATCH)
            outcome.price_drops = sum(1 for e in fresh if e.kind is NotificationKind.PRICE_DROP)

            await self._dispatch(sub, fresh, outcome)

        except InvalidFilterError as e:
            logger.error(f"Skipping subscription {sub.id}: {e}")
            outcome.error = str(e)
        except Exception as e:
            logger.exception(f"Error processing subscription {sub.id}")
            outcome.error = f"{type(e).__name__}: {e}"
        finally:
            try:
                await loop.run_in_executor(
                    None, self.subscriptions.advance_watermark, sub.id, now
                )
            except Exception as e:
                logger.exception(f"Could not advance watermark for {sub.id}")
                outcome.error = outcome.error or f"watermark: {e}"

        if outcome.new_matches or outcome.price_drops:
            logger.info(
                f"Subscription {sub.id}: {outcome.new_matches} new, "
                f"{outcome.price_drops} price drops, {outcome.duplicates} already sent"
            )
        return outcome

    def _detect_and_record(
        self, sub: Subscription, search: SearchFilter, now: datetime
    ) -> tuple[list[NotificationEvent], int]:
        """Detect events and log them; returns (inserted events, duplicate count)."""
        fresh = []
        duplicates = 0
        for event in self._detect(sub, search, now):
            if self.ledger.insert_if_absent(event) is LedgerInsert.INSERTED:
                fresh.append(event)
            else:
                duplicates += 1
        return fresh, duplicates

    def _detect(
        self, sub: Subscription, search: SearchFilter, now: datetime
    ) -> list[NotificationEvent]:
        since = sub.last_checked_at or (now - self.initial_lookback)
        new_listings = self.engine.find_new_matches(search, since)
        new_ids = {l.id for l in new_listings}

        candidates = [
            l for l in self.engine.price_drop_candidates(search) if l.id not in new_ids
        ]
        if self.baseline_mode == "first_seen":
            known = self.baselines.get_many(sub.id, [c.id for c in candidates])
            drops = self.engine.find_price_drops(search, candidates, baselines=known)
            self.baselines.record_first_seen(sub.id, new_listings + candidates, now)
        else:
            drops = self.engine.find_price_drops(search, candidates)

        return [new_match_event(sub, l, now) for l in new_listings] + [
            price_drop_event(sub, d, now) for d in drops
        ]

    async def _dispatch(
        self,
        sub: Subscription,
        events: list[NotificationEvent],
        outcome: SubscriptionOutcome,
    ) -> None:
        """Fan deduplicated events out to the subscription's enabled channels."""
        if not events:
            return
        loop = asyncio.get_running_loop()

        if sub.push_credential is not None:
            for kind in NotificationKind:
                group = [e for e in events if e.kind is kind]
                if not group:
                    continue
                title, body, data, image = compose_alert_push(
                    kind, group, base_url=self.base_url, locale=sub.locale
                )
                result = await loop.run_in_executor(
                    None,
                    functools.partial(
                        self.push.send, sub.push_credential, title, body, data, image=image
                    ),
                )
                if result is PushResult.DELIVERED:
                    outcome.pushes_delivered += 1
                elif result is PushResult.EXPIRED:
                    await loop.run_in_executor(None, self.subscriptions.clear_push_credential, sub.id)
                    outcome.push_expired = True
                    break
                else:
                    outcome.pushes_failed += 1
                    logger.warning(
                        f"Push failed for subscription {sub.id} ({len(group)} {kind.value} events)"
                    )

        if sub.wants_email:
            subject, html = render_alert_email(
                sub.id, events, locale=sub.locale, base_url=self.base_url
            )
            result = await loop.run_in_executor(None, self.email.send, sub.email, subject, html)
            if result is EmailResult.OK:
                outcome.emails_sent += 1
            else:
                outcome.emails_failed += 1
                logger.warning(f"Email failed for subscription {sub.id} ({len(events)} events)")
