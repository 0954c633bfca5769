import logging
from typing import Iterable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from ingestion.backfill import BackfillRunner
from ingestion.transformers import CURATED_TRANSFORMERS
from models.base import SourceName

logger = logging.getLogger(__name__)


class BackfillScheduler:
    """Periodic backfill of every transformable source."""

    def __init__(
        self,
        runner: BackfillRunner,
        sources: Optional[Iterable[SourceName]] = None,
        interval_minutes: Optional[int] = None,
    ):
        self.runner = runner
        self.sources = list(sources) if sources is not None else list(CURATED_TRANSFORMERS)
        self.interval_minutes = interval_minutes or settings.BACKFILL_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler()

    async def run_backfill_job(self):
        """Job to backfill all sources"""
        logger.info("Scheduler: Starting backfill job")
        for source in self.sources:
            try:
                summary = await self.runner.run(source)
                logger.info(
                    f"Scheduler: {source.value} backfill done "
                    f"({summary.succeeded} ok, {summary.failed} failed, {summary.skipped} skipped)"
                )
            except Exception as e:
                logger.error(f"Scheduler: {source.value} backfill failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_backfill_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="backfill_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"Backfill scheduler started (every {self.interval_minutes} min)")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Backfill scheduler stopped")
