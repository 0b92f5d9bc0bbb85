import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from ingestion.orchestrator import EnrichmentOrchestrator

logger = logging.getLogger(__name__)


class EnrichmentScheduler:
    """Refresh stale cadastral objects on a fixed interval"""

    def __init__(
        self,
        orchestrator: EnrichmentOrchestrator,
        interval_minutes: Optional[int] = None
    ):
        self.orchestrator = orchestrator
        self.interval_minutes = interval_minutes or settings.ENRICHMENT_INTERVAL_MINUTES
        self.scheduler = AsyncIOScheduler()

    async def run_enrichment_job(self):
        """Job to run one enrichment pass"""
        logger.info("Scheduler: Starting enrichment job")
        try:
            result = await self.orchestrator.run_pending()
            logger.info(f"Scheduler: Enrichment job finished - {result}")
        except Exception as e:
            logger.error(f"Scheduler: Enrichment job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_enrichment_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="enrichment_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info(f"Enrichment scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        """
        Request shutdown without waiting for a running job.

        AsyncIOScheduler applies the shutdown on its event loop, so
        ``scheduler.running`` turns False only after the loop gets control.
        """
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Enrichment scheduler shutdown requested")
