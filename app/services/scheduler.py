"""Periodic reminder sweeps on the application's event loop."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.services.reminder_service import ReminderService, sweep_due_reminders

logger = logging.getLogger(__name__)

REMINDER_SWEEP_JOB_ID = "reminder_sweep"


class ReminderScheduler:
    """Runs the due-reminder sweep every `interval_seconds`."""

    def __init__(self, service: ReminderService, interval_seconds: int):
        self.service = service
        self.interval_seconds = interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        if self.scheduler is not None:
            logger.warning("Reminder scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.scheduler.add_job(
            func=sweep_due_reminders,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            args=[self.service],
            id=REMINDER_SWEEP_JOB_ID,
            name="Due Reminder Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Reminder scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    def stop(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Reminder scheduler stopped")
