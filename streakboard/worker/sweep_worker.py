"""
Sweep Worker

Background service for the challenge expiry sweep:
- Hourly: reset expired official challenges, credit and delete expired
  community challenges

Uses APScheduler for job scheduling.
"""
import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from streakboard.config import settings
from streakboard.services.activity_service import ActivityLog
from streakboard.services.challenge_service import ChallengeService
from streakboard.services.clock import Clock, SystemClock
from streakboard.services.events import EventSink, FanOutSink, LoggingEventSink

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger('sweep_worker')


class SweepWorker:
    """Background worker for the expiry sweep."""

    def __init__(
        self,
        database_url: str = settings.database_url,
        clock: Clock | None = None,
        events: EventSink | None = None,
        session_factory=None,
    ):
        if session_factory is None:
            self.engine = create_async_engine(database_url, echo=False)
            session_factory = async_sessionmaker(self.engine, expire_on_commit=False)
        else:
            self.engine = None
        self.async_session = session_factory
        clock = clock or SystemClock()
        if events is None:
            # Completions credited by the sweep show up in the activity feed
            events = FanOutSink(ActivityLog(self.async_session, clock=clock), LoggingEventSink())
        self.service = ChallengeService(self.async_session, clock=clock, events=events)
        self.scheduler = AsyncIOScheduler()

    async def start(self):
        """Start the worker and scheduler."""
        logger.info('Starting Sweep Worker...')

        self.scheduler.add_job(
            self._run_sweep,
            IntervalTrigger(minutes=settings.sweep_interval_minutes),
            id='expiry_sweep',
            name='Challenge Expiry Sweep',
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        logger.info('Scheduler started. Jobs:')
        for job in self.scheduler.get_jobs():
            logger.info(f'  - {job.name}: next run at {job.next_run_time}')

        # Keep running
        try:
            while True:
                await asyncio.sleep(60)
        except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
            logger.info('Shutting down...')
            self.scheduler.shutdown()
            if self.engine is not None:
                await self.engine.dispose()

    async def _run_sweep(self) -> dict:
        """Run one expiry sweep."""
        logger.info('Running expiry sweep...')
        try:
            summary = await self.service.sweep_expired()
        except Exception as e:
            logger.error(f'Expiry sweep failed: {e}', exc_info=True)
            raise

        result = summary.as_dict()
        logger.info(f'Sweep result: {result}')
        return result

    async def run_once(self) -> dict:
        """Run the sweep immediately (for testing and manual runs)."""
        return await self._run_sweep()


async def main():
    """Entry point for the worker."""
    worker = SweepWorker()
    await worker.start()


def run():
    asyncio.run(main())


if __name__ == '__main__':
    run()
