import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from core.config import settings, load_tracking_config, TrackingConfig
from core.database import build_engine, build_session_factory
from models.base import PriorityTier
from tracking.alerts import AlertEngine
from tracking.batch_scheduler import BatchScheduler
from tracking.cache import PositionCache
from tracking.providers.base import RankingProvider
from tracking.providers.dataforseo import DataForSEOClient
from tracking.repository import Repository

logger = logging.getLogger(__name__)


class TrackingScheduler:
    """
    Cron cadence per priority tier: high daily, medium weekly, low monthly.

    The position cache lives as long as the scheduler so that runs close
    together share lookups.
    """

    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        provider: Optional[RankingProvider] = None
    ):
        self.config = config or load_tracking_config(settings)
        self.scheduler = AsyncIOScheduler()
        self.engine = build_engine(settings.DATABASE_URL)
        self.SessionLocal = build_session_factory(self.engine)
        self.cache = PositionCache(ttl_seconds=self.config.batch.cache_ttl_seconds)
        self._provider = provider

    @property
    def provider(self) -> RankingProvider:
        # Built lazily so that the API can start without provider credentials
        if self._provider is None:
            self._provider = DataForSEOClient()
        return self._provider

    def triggers(self):
        return {
            PriorityTier.HIGH: CronTrigger(hour=settings.SCHEDULE_HIGH_HOUR, minute=0),
            PriorityTier.MEDIUM: CronTrigger(
                day_of_week=settings.SCHEDULE_MEDIUM_DAY_OF_WEEK,
                hour=settings.SCHEDULE_MEDIUM_HOUR,
                minute=0
            ),
            PriorityTier.LOW: CronTrigger(
                day=settings.SCHEDULE_LOW_DAY,
                hour=settings.SCHEDULE_LOW_HOUR,
                minute=0
            ),
        }

    async def run_tracking_job(self, priority: PriorityTier):
        """Job to track one priority tier"""
        logger.info(f"Scheduler: Starting {priority.value} priority tracking job")
        self.cache.sweep()

        async with self.SessionLocal() as session:
            try:
                repository = Repository(session)
                runner = BatchScheduler(
                    repository=repository,
                    provider=self.provider,
                    alert_engine=AlertEngine(repository, self.config.alerts),
                    config=self.config,
                    cache=self.cache,
                )
                result = await runner.run(priority)
                logger.info(
                    f"Scheduler: {priority.value} job finished - "
                    f"{result['keywords_succeeded']}/{result['keywords_processed']} keywords updated"
                )
                return result

            except Exception as e:
                logger.error(f"Scheduler: {priority.value} tracking job failed - {e}")
                return None

    def start(self):
        """Start the scheduler"""
        for priority, trigger in self.triggers().items():
            self.scheduler.add_job(
                self.run_tracking_job,
                trigger=trigger,
                args=[priority],
                id=f"tracking_{priority.value}",
                replace_existing=True,
                max_instances=1,
                coalesce=True
            )
        self.scheduler.start()
        logger.info("Tracking scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Tracking scheduler stopped")
