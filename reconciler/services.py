"""
Wiring of the reconciler components and the trigger entry points shared by
the CLI, the scheduler and the HTTP API.
"""

from datetime import timedelta
from typing import Optional

import structlog

from catalog.client import CatalogClient
from reconciler.digest import WeeklyDigestBuilder
from reconciler.models import DigestOutcome, RunReport
from reconciler.notifications import NotificationDispatcher, ResendNotifier
from reconciler.run_lock import RunLock
from reconciler.runner import ReconciliationRunner
from tracker.database import MongoRecordStore
from utilities.config import AppConfig

logger = structlog.get_logger(__name__)

RECONCILIATION_LOCK = "reconciliation"
DIGEST_LOCK = "weekly_digest"


class ReconcilerServices:
    """Holds one set of connected components built from a single configuration."""

    def __init__(
        self,
        config: AppConfig,
        record_store,
        catalog,
        notifier: Optional[ResendNotifier],
        run_lock: RunLock,
    ):
        self.config = config
        self.record_store = record_store
        self.catalog = catalog
        self.notifier = notifier
        self.run_lock = run_lock
        self.dispatcher = NotificationDispatcher(config, notifier)
        self.runner = ReconciliationRunner(config, record_store, catalog, self.dispatcher)
        self.digest_builder = WeeklyDigestBuilder(config, record_store, notifier)
        self.logger = logger.bind(component="reconciler_services")

    @classmethod
    async def create(cls, config: AppConfig) -> "ReconcilerServices":
        """Connect to MongoDB and build every component from configuration."""
        record_store = MongoRecordStore.from_config(config)
        await record_store.connect()

        run_lock = RunLock(
            record_store.database[config.locks_collection],
            ttl=timedelta(minutes=config.run_lock_ttl_minutes),
        )
        await run_lock.ensure_indexes()

        notifier = None
        if config.notifications_configured():
            notifier = ResendNotifier(
                api_key=config.resend_api_key,
                sender=config.notification_sender,
                api_url=config.resend_api_url,
                timeout=config.request_timeout,
            )
        else:
            logger.warning("Email notifications not configured")

        return cls(config, record_store, CatalogClient.from_config(config), notifier, run_lock)

    async def trigger_reconciliation(self) -> RunReport:
        """
        Run one reconciliation pass unless another is in progress.

        Raises:
            RunInProgressError: if another pass holds the lock
            RecordStoreError: if the eligible books cannot be selected
        """
        async with self.run_lock.hold(RECONCILIATION_LOCK):
            return await self.runner.run()

    async def trigger_weekly_digest(self) -> DigestOutcome:
        """
        Build and send the weekly digest unless another send is in progress.

        Raises:
            RunInProgressError: if another digest holds the lock
        """
        async with self.run_lock.hold(DIGEST_LOCK):
            return await self.digest_builder.build_and_send()

    async def close(self) -> None:
        """Close HTTP clients and the database connection."""
        await self.catalog.close()
        if self.notifier is not None:
            await self.notifier.close()
        await self.record_store.disconnect()
