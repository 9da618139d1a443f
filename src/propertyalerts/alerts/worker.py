"""Background worker that runs the dispatch scheduler on an interval."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..clock import utcnow
from ..config import config
from .scheduler import DispatchScheduler, RunSummary

logger = logging.getLogger(__name__)


class AlertWorker:
    """Periodically sweep subscriptions and prune the ledger."""

    def __init__(
        self,
        scheduler: DispatchScheduler,
        interval_minutes: Optional[int] = None,
        retention_days: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._scheduler = scheduler
        self._interval_minutes = interval_minutes or config.run_interval_minutes
        self._retention_days = retention_days or config.ledger_retention_days
        self._clock = clock
        self._task: asyncio.Task | None = None
        self._status: dict = {
            "is_running": False,
            "last_run_started": None,
            "last_run_completed": None,
            "last_summary": None,
            "runs_completed": 0,
            "next_run_at": None,
        }

    async def start(self):
        """Launch the background loop."""
        if self._task and not self._task.done():
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Alert worker started (interval={self._interval_minutes}m)")

    async def stop(self):
        """Cancel the background task."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Alert worker stopped")

    def get_status(self) -> dict:
        """Return current worker status."""
        return {**self._status}

    async def _loop(self):
        """Main loop: run, sleep, repeat."""
        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Alert cycle failed unexpectedly")

            next_run = self._clock() + timedelta(minutes=self._interval_minutes)
            self._status["next_run_at"] = next_run.isoformat()
            await asyncio.sleep(self._interval_minutes * 60)

    async def run_cycle(self) -> RunSummary:
        """Execute one sweep followed by ledger retention."""
        now = self._clock()
        self._status["is_running"] = True
        self._status["last_run_started"] = now.isoformat()
        try:
            summary = await self._scheduler.run_once(now)
            self._status["last_summary"] = summary.as_dict()
            self._status["runs_completed"] += 1
        finally:
            self._status["is_running"] = False
            self._status["last_run_completed"] = self._clock().isoformat()

        cutoff = now - timedelta(days=self._retention_days)
        self._scheduler.ledger.prune_older_than(cutoff)
        return summary
