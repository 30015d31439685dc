"""
Reconciliation runner.

One pass checks every eligible tracked book against the library catalog,
strictly one book at a time, and records what changed. A failure for one
book becomes that book's outcome and never aborts the pass.
"""

import uuid
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from catalog.client import CatalogSearchError
from reconciler.matcher import CatalogMatcher
from reconciler.models import ItemOutcome, OutcomeType, ReconciliationPlan, RunReport
from reconciler.notifications import NotificationDispatcher
from reconciler.status import plan_reconciliation
from tracker.database import RecordStoreError
from tracker.models import ELIGIBLE_STATUSES, LibraryStatus, TrackedBook
from utilities.logger import RunLogger

logger = structlog.get_logger(__name__)


class ReconciliationRunner:
    """Checks eligible tracked books against the catalog and applies status changes."""

    def __init__(
        self,
        config,
        record_store,
        catalog,
        dispatcher: Optional[NotificationDispatcher] = None,
        matcher: Optional[CatalogMatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the runner.

        Args:
            config: Application configuration
            record_store: Store for books and status history
            catalog: Catalog provider with an async search(query) method
            dispatcher: Change notification dispatcher, None to never notify
            matcher: Catalog matcher
            clock: Returns the current naive UTC time
        """
        self.config = config
        self.record_store = record_store
        self.catalog = catalog
        self.dispatcher = dispatcher
        self.matcher = matcher or CatalogMatcher()
        self.clock = clock or datetime.utcnow
        self.logger = logger.bind(component="reconciliation_runner")

    def eligible_statuses(self) -> List[LibraryStatus]:
        statuses = list(ELIGIBLE_STATUSES)
        if self.config.promote_released_books:
            statuses.insert(0, LibraryStatus.NOT_RELEASED)
        return statuses

    async def run(self) -> RunReport:
        """
        Run one reconciliation pass.

        Returns:
            RunReport with one outcome per eligible book

        Raises:
            RecordStoreError: if the eligible books cannot be selected
        """
        started_at = self.clock()
        run_id = f"reconciliation_{started_at.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        run_logger = RunLogger(run_id)

        try:
            books = await self.record_store.find_books_released_by(
                started_at.date(), self.eligible_statuses()
            )
        except RecordStoreError as e:
            run_logger.log_error(f"Failed to select eligible books: {e}")
            raise

        report = RunReport(run_id=run_id, started_at=started_at, books_checked=len(books))
        run_logger.log_run_start(len(books))

        for book in books:
            try:
                outcome = await self._reconcile_book(book)
            except Exception as e:
                run_logger.log_error(str(e), title=book.title)
                outcome = ItemOutcome(
                    book_id=book.id,
                    title=book.title,
                    outcome=OutcomeType.ERROR,
                    old_status=book.library_status,
                    detail=str(e),
                )

            report.outcomes.append(outcome)
            run_logger.log_book_outcome(
                book.title,
                outcome.outcome.value,
                book_id=book.id,
                old_status=outcome.old_status.value if outcome.old_status else None,
                new_status=outcome.new_status.value if outcome.new_status else None,
                detail=outcome.detail,
            )

        report.completed_at = self.clock()
        run_logger.log_run_complete(report.summary(), report.duration_seconds)
        return report

    async def _reconcile_book(self, book: TrackedBook) -> ItemOutcome:
        try:
            results = await self.catalog.search(book.title)
        except CatalogSearchError as e:
            return ItemOutcome(
                book_id=book.id,
                title=book.title,
                outcome=OutcomeType.SEARCH_FAILED,
                old_status=book.library_status,
                detail=str(e),
            )

        if not results:
            return ItemOutcome(
                book_id=book.id,
                title=book.title,
                outcome=OutcomeType.NOT_FOUND,
                old_status=book.library_status,
            )

        decision = self.matcher.match(book, results)
        plan = plan_reconciliation(book, decision, self.clock())

        outcome = ItemOutcome(
            book_id=book.id,
            title=book.title,
            outcome=OutcomeType.STATUS_CHANGED if plan.changed else OutcomeType.UNCHANGED,
            old_status=plan.old_status,
            new_status=plan.new_status,
            match_strategy=decision.strategy,
            catalog_id=decision.result.id if decision.matched else None,
            available_copies=decision.result.available_copies if decision.matched else None,
            holds_count=decision.result.holds_count if decision.matched else None,
        )

        try:
            applied = await self._apply(plan)
        except RecordStoreError as e:
            outcome.outcome = OutcomeType.UPDATE_FAILED
            outcome.detail = str(e)
            return outcome

        if not applied:
            outcome.outcome = OutcomeType.UPDATE_FAILED
            outcome.detail = "Book was modified or removed during the run"
            return outcome

        if plan.notification is not None:
            outcome.notified = await self._notify(plan)

        return outcome

    async def _apply(self, plan: ReconciliationPlan) -> bool:
        """Write the plan to the record store. Returns False if the book did not match."""
        if not plan.changed:
            return await self.record_store.mark_checked(
                plan.book_id, plan.checked_at, catalog_id=plan.catalog_id
            )

        updated = await self.record_store.update_status(
            plan.book_id,
            expected_status=plan.old_status,
            new_status=plan.new_status,
            catalog_id=plan.catalog_id,
            checked_at=plan.checked_at,
        )
        if updated:
            try:
                await self.record_store.append_status_change(plan.history_record)
            except RecordStoreError as e:
                record = plan.history_record
                self.logger.error(
                    "Status changed but history record was not written",
                    book_id=record.book_id,
                    old_status=record.old_status.value if record.old_status else None,
                    new_status=record.new_status.value,
                    changed_at=record.changed_at.isoformat(),
                    source=record.source.value,
                    notes=record.notes,
                    error=str(e),
                )
                raise RecordStoreError(f"Status history not recorded: {e}") from e
        return updated

    async def _notify(self, plan: ReconciliationPlan) -> bool:
        if self.dispatcher is None:
            return False

        email_id = await self.dispatcher.dispatch(plan.notification)
        if email_id is None:
            return False

        try:
            await self.record_store.mark_notified(plan.book_id, self.clock())
        except RecordStoreError as e:
            self.logger.warning("Failed to record notification time",
                                book_id=plan.book_id, error=str(e))
        return True
