"""Background scheduler for the nightly streak maintenance sweep."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from . import commands

if TYPE_CHECKING:
    from .context import AppContext

logger = logging.getLogger("apto.scheduler")

SWEEP_JOB_ID = "streak_sweep"


class MaintenanceScheduler:
    """Runs the streak sweep once a day on a background thread."""

    def __init__(self, ctx: AppContext):
        """Initialize the scheduler with app context.

        Args:
            ctx: Application context with config, repository and lock
        """
        self.ctx = ctx
        self.scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    def start(self) -> None:
        """Register the sweep job and start the background thread."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        config = self.ctx.config
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.scheduler.add_job(
            func=self.run_sweep,
            trigger=CronTrigger(hour=config.SWEEP_HOUR, minute=config.SWEEP_MINUTE, timezone="UTC"),
            id=SWEEP_JOB_ID,
            name="Habit streak maintenance",
            replace_existing=True,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(
            "Background scheduler started, streak sweep daily at %02d:%02d UTC",
            config.SWEEP_HOUR,
            config.SWEEP_MINUTE,
        )

        if config.SWEEP_ON_START:
            self.run_sweep()

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def run_sweep(self) -> set[int]:
        """Execute the sweep; failures are logged so the job keeps its schedule."""
        try:
            reset = commands.update_habit_streaks(self.ctx)
        except commands.CommandError as exc:
            logger.error("Scheduled streak sweep failed: %s", exc.message, exc_info=True)
            return set()
        logger.info("Scheduled streak sweep reset %d habit(s)", len(reset))
        return reset


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> MaintenanceScheduler:
    """Create and optionally start a maintenance scheduler."""
    scheduler = MaintenanceScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
