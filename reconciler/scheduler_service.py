"""
Scheduler service for the daily catalog check and the weekly digest.

This module provides:
- Cron scheduling with APScheduler
- Job wrappers that never raise into the scheduler
- Run-once mode for external cron hosts
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Dict

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from reconciler.run_lock import RunInProgressError
from reconciler.services import ReconcilerServices

logger = structlog.get_logger(__name__)


class SchedulerService:
    """Runs reconciliation and the weekly digest on a fixed cadence."""

    def __init__(self, services: ReconcilerServices, install_signal_handlers: bool = True):
        """
        Initialize scheduler service.

        Args:
            services: Connected reconciler components
            install_signal_handlers: Stop cleanly on SIGINT/SIGTERM
        """
        self.services = services
        self.config = services.config
        self.scheduler = AsyncIOScheduler(timezone=self.config.timezone)
        self.logger = logger.bind(component="scheduler_service")

        if install_signal_handlers:
            self._setup_signal_handlers()

        self._setup_scheduler_listeners()

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            self.logger.info("Received signal, shutting down", signal=signum)
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.info(
                "Job executed",
                job_id=event.job_id,
                success=event.retval.get('success') if event.retval else None,
                duration=event.retval.get('duration', 0) if event.retval else 0
            )

        def job_error_listener(event):
            self.logger.error(
                "Job execution failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def add_jobs(self) -> None:
        """Register the daily check and the weekly digest."""
        self.scheduler.add_job(
            func=self.reconciliation_job,
            trigger=CronTrigger(
                hour=self.config.check_hour,
                minute=self.config.check_minute,
                timezone=self.config.timezone
            ),
            id='daily_reconciliation',
            name='Daily Library Check',
            max_instances=1,
            replace_existing=True
        )
        self.logger.info(
            "Added daily reconciliation job",
            hour=self.config.check_hour,
            minute=self.config.check_minute,
            timezone=self.config.timezone
        )

        self.scheduler.add_job(
            func=self.weekly_digest_job,
            trigger=CronTrigger(
                day_of_week=self.config.digest_day_of_week,
                hour=self.config.digest_hour,
                minute=self.config.digest_minute,
                timezone=self.config.timezone
            ),
            id='weekly_digest',
            name='Weekly Digest',
            max_instances=1,
            replace_existing=True
        )
        self.logger.info(
            "Added weekly digest job",
            day_of_week=self.config.digest_day_of_week,
            hour=self.config.digest_hour,
            minute=self.config.digest_minute,
            timezone=self.config.timezone
        )

    async def start(self, run_once: bool = False) -> None:
        """
        Start the scheduler and keep running until stopped.

        Args:
            run_once: Run one reconciliation pass and return instead
        """
        if run_once:
            self.logger.info("Starting scheduler service in RUN ONCE MODE")
            result = await self.reconciliation_job()
            self.logger.info("Run once mode completed", **result)
            return

        self.add_jobs()
        self.scheduler.start()
        self.logger.info("Scheduler service started", timezone=self.config.timezone)

        try:
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, asyncio.CancelledError):
            self.logger.info("Shutting down scheduler service")
            self.stop()

    def stop(self) -> None:
        """Stop the scheduler service."""
        try:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.logger.info("Scheduler service stopped")

        except Exception as e:
            self.logger.error("Error stopping scheduler service", error=str(e))

    async def reconciliation_job(self) -> Dict:
        """Daily reconciliation job."""
        start_time = datetime.utcnow()

        try:
            report = await self.services.trigger_reconciliation()
            return {
                'success': True,
                'run_id': report.run_id,
                'duration': (datetime.utcnow() - start_time).total_seconds(),
                **report.summary()
            }

        except RunInProgressError as e:
            self.logger.warning("Reconciliation skipped", reason=str(e))
            return {
                'success': False,
                'skipped': True,
                'error': str(e),
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

        except Exception as e:
            self.logger.error("Reconciliation job failed", error=str(e))
            return {
                'success': False,
                'error': str(e),
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

    async def weekly_digest_job(self) -> Dict:
        """Weekly digest job."""
        start_time = datetime.utcnow()

        try:
            outcome = await self.services.trigger_weekly_digest()
            return {
                'success': outcome.status.value != 'failed',
                'status': outcome.status.value,
                'email_id': outcome.email_id,
                'error': outcome.error,
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

        except RunInProgressError as e:
            self.logger.warning("Weekly digest skipped", reason=str(e))
            return {
                'success': False,
                'skipped': True,
                'error': str(e),
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

        except Exception as e:
            self.logger.error("Weekly digest job failed", error=str(e))
            return {
                'success': False,
                'error': str(e),
                'duration': (datetime.utcnow() - start_time).total_seconds()
            }

    def get_scheduler_status(self) -> Dict:
        """Get current scheduler status."""
        jobs = []
        for job in self.scheduler.get_jobs():
            next_run_time = getattr(job, 'next_run_time', None)
            jobs.append({
                'id': job.id,
                'name': job.name,
                'next_run_time': next_run_time.isoformat() if next_run_time else None,
                'trigger': str(job.trigger)
            })

        return {
            'running': self.scheduler.running,
            'timezone': self.config.timezone,
            'jobs': jobs,
            'job_count': len(jobs)
        }
