"""CLI runner for the alert pipeline.

Run via: propertyalerts run
Or schedule with cron/Task Scheduler.
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .alerts import AlertWorker, DispatchScheduler
from .clock import utcnow
from .config import config
from .errors import AlertPipelineError
from .storage import Database, NotificationLedger, SubscriptionStore

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


async def run_alerts(db: Database, subscription_id: str | None = None) -> int:
    """Run one sweep, or one subscription when an id is given.

    Returns:
        Number of subscriptions that failed
    """
    scheduler = DispatchScheduler.from_database(db)

    if subscription_id:
        outcome = await scheduler.run_subscription(subscription_id)
        console.print(
            f"[bold]{subscription_id}[/bold]: {outcome.new_matches} new matches, "
            f"{outcome.price_drops} price drops, {outcome.duplicates} already sent"
        )
        if outcome.error:
            console.print(f"[red]{outcome.error}[/red]")
            return 1
        return 0

    summary = await scheduler.run_once()
    console.print()
    console.print(
        f"[bold]Run complete.[/bold] {summary.subscriptions_checked} subscriptions, "
        f"{summary.new_matches} new matches, {summary.price_drops} price drops"
    )
    console.print(
        f"[dim]Pushes: {summary.pushes_delivered} delivered, {summary.pushes_failed} failed, "
        f"{summary.push_credentials_expired} expired. "
        f"Emails: {summary.emails_sent} sent, {summary.emails_failed} failed.[/dim]"
    )
    for error in summary.errors:
        console.print(f"[red]  {error}[/red]")
    return len(summary.errors)


async def watch(db: Database, interval_minutes: int) -> None:
    """Run the periodic worker until interrupted."""
    worker = AlertWorker(DispatchScheduler.from_database(db), interval_minutes=interval_minutes)
    await worker.start()
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await worker.stop()


def list_subscriptions(db: Database) -> None:
    subs = SubscriptionStore(db).list_all()
    if not subs:
        console.print("[yellow]No saved subscriptions found.[/yellow]")
        return

    table = Table(title="Saved Subscriptions")
    table.add_column("ID", style="dim")
    table.add_column("User")
    table.add_column("Filter")
    table.add_column("Push")
    table.add_column("Email")
    table.add_column("Last Checked")
    table.add_column("Active")

    for sub in subs:
        filt = ", ".join(f"{k}={v}" for k, v in sub.filter.items() if v is not None) or "Any"
        table.add_row(
            sub.id,
            sub.user_id,
            filt,
            "yes" if sub.push_credential else "-",
            sub.email if sub.wants_email else "-",
            sub.last_checked_at.isoformat() if sub.last_checked_at else "never",
            "🟢" if sub.active else "⚪",
        )
    console.print(table)


def prune(db: Database, days: int) -> int:
    cutoff = utcnow() - timedelta(days=days)
    removed = NotificationLedger(db).prune_older_than(cutoff)
    console.print(f"Removed {removed} ledger entries older than {days} days")
    return removed


def main() -> None:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Property alert dispatcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  propertyalerts run
  propertyalerts run --subscription 3f2c...
  propertyalerts watch --interval 30
  propertyalerts list

Schedule with cron (check every hour):
  0 * * * * propertyalerts run
        """,
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"SQLite database path (default: {config.db_path})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run_cmd = commands.add_parser("run", help="Check all active subscriptions once")
    run_cmd.add_argument(
        "--subscription",
        metavar="ID",
        help="Only process this subscription (send now)",
    )

    watch_cmd = commands.add_parser("watch", help="Check subscriptions on an interval")
    watch_cmd.add_argument(
        "--interval",
        type=int,
        default=config.run_interval_minutes,
        help="Minutes between runs",
    )

    commands.add_parser("list", help="List saved subscriptions")

    prune_cmd = commands.add_parser("prune", help="Delete old ledger entries")
    prune_cmd.add_argument(
        "--days",
        type=int,
        default=config.ledger_retention_days,
        help="Keep entries newer than this many days",
    )

    args = parser.parse_args()
    setup_logging(verbose=args.verbose)
    db = Database(args.db)

    try:
        if args.command == "list":
            list_subscriptions(db)
        elif args.command == "prune":
            prune(db, args.days)
        elif args.command == "watch":
            asyncio.run(watch(db, args.interval))
        else:
            failures = asyncio.run(run_alerts(db, args.subscription))
            sys.exit(0 if failures == 0 else 1)
    except AlertPipelineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
