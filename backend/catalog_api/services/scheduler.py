"""Cron-driven recurring sync on top of APScheduler."""
from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..errors import CatalogValidationError
from ..schemas import SchedulePreset, ScheduleStatus
from .sync_engine import SyncEngine, SyncOptions

logger = logging.getLogger(__name__)

SCHEDULE_JOB_ID = "catalog-sync"

SCHEDULE_PRESETS: dict[str, str] = {
    "daily": "0 2 * * *",
    "hourly": "0 * * * *",
    "twice_daily": "0 2,14 * * *",
    "weekly": "0 2 * * 0",
}

PRESET_DESCRIPTIONS: dict[str, str] = {
    "daily": "Every day at 02:00",
    "hourly": "At the start of every hour",
    "twice_daily": "Every day at 02:00 and 14:00",
    "weekly": "Every Sunday at 02:00",
}


def resolve_schedule(schedule: str) -> str:
    """Map a preset name to its cron expression; other values pass through."""

    return SCHEDULE_PRESETS.get(schedule, schedule)


def parse_cron(expression: str, *, timezone: str = "UTC") -> CronTrigger:
    """Build a trigger from a five-field cron expression."""

    try:
        return CronTrigger.from_crontab(expression, timezone=timezone)
    except ValueError as exc:
        raise CatalogValidationError(f"Invalid cron expression '{expression}': {exc}") from exc


class SyncScheduler:
    """Owns the single recurring sync job of this process.

    The job is registered with ``max_instances=1`` and ``coalesce=True`` so a
    slow run never overlaps the next tick; the engine additionally skips a
    tick while a one-shot or job-driven sync is in flight.
    """

    def __init__(self, engine: SyncEngine, *, timezone: str = "UTC") -> None:
        self._engine = engine
        self._timezone = timezone
        self._scheduler: AsyncIOScheduler | None = None
        self._cron: str | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self, schedule: str, options: SyncOptions | None = None) -> ScheduleStatus:
        """(Re)start the recurring sync; must be called with a running event loop."""

        cron = resolve_schedule(schedule)
        trigger = parse_cron(cron, timezone=self._timezone)
        self.stop()
        scheduler = AsyncIOScheduler(timezone=self._timezone)
        scheduler.add_job(
            self._engine.run_scheduled,
            trigger,
            args=[options],
            id=SCHEDULE_JOB_ID,
            name="Catalog sync",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        self._cron = cron
        logger.info("Scheduled catalog sync with cron '%s'", cron)
        return self.status()

    def stop(self) -> ScheduleStatus:
        """Stop the recurring sync; a no-op when nothing is scheduled."""

        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            logger.info("Stopped scheduled catalog sync")
        self._scheduler = None
        self._cron = None
        return self.status()

    def status(self) -> ScheduleStatus:
        next_run = None
        if self._scheduler is not None:
            job = self._scheduler.get_job(SCHEDULE_JOB_ID)
            next_run = getattr(job, "next_run_time", None) if job else None
        return ScheduleStatus(running=self.running, cron=self._cron, next_run_time=next_run)

    @staticmethod
    def presets() -> list[SchedulePreset]:
        return [
            SchedulePreset(name=name, cron=cron, description=PRESET_DESCRIPTIONS[name])
            for name, cron in SCHEDULE_PRESETS.items()
        ]
