"""
Weekly digest of upcoming releases and recent library status changes.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

import structlog

from reconciler.models import DigestEntry, DigestOutcome, DigestStatus
from reconciler.rendering import DIGEST_SUBJECT, render_weekly_digest
from tracker.models import StatusChangeRecord

logger = structlog.get_logger(__name__)

DIGEST_WINDOW = timedelta(days=7)


def latest_change_per_book(records: Iterable[StatusChangeRecord]) -> List[StatusChangeRecord]:
    """
    Collapse history to the most recent record per book.

    Returns:
        One record per book, newest first
    """
    latest: Dict[str, StatusChangeRecord] = {}
    for record in records:
        current = latest.get(record.book_id)
        if current is None or record.changed_at > current.changed_at:
            latest[record.book_id] = record
    return sorted(latest.values(), key=lambda r: r.changed_at, reverse=True)


class WeeklyDigestBuilder:
    """Builds the weekly summary email and sends it once."""

    def __init__(
        self,
        config,
        record_store,
        notifier,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the builder.

        Args:
            config: Application configuration
            record_store: Store for books and status history
            notifier: Email notifier, None when not configured
            clock: Returns the current naive UTC time
        """
        self.config = config
        self.record_store = record_store
        self.notifier = notifier
        self.clock = clock or datetime.utcnow
        self.logger = logger.bind(component="weekly_digest")

    async def build_and_send(self) -> DigestOutcome:
        """
        Gather the week's releases and changes and send one digest.

        Never raises: configuration, store and send failures are reported in
        the returned outcome.
        """
        if self.notifier is None or not self.config.notifications_configured():
            self.logger.error("Weekly digest not configured",
                              has_notifier=self.notifier is not None)
            return DigestOutcome(
                status=DigestStatus.FAILED,
                error="Notification API key and recipient must be configured",
            )

        now = self.clock()
        today = now.date()

        try:
            upcoming = await self.record_store.find_books_releasing_between(
                today, today + DIGEST_WINDOW
            )
            entries = await self._recent_changes(now - DIGEST_WINDOW, now)

        except Exception as e:
            self.logger.error("Failed to gather weekly digest data", error=str(e))
            return DigestOutcome(status=DigestStatus.FAILED, error=str(e))

        if not upcoming and not entries:
            self.logger.info("Nothing to report, weekly digest skipped")
            return DigestOutcome(status=DigestStatus.SKIPPED)

        html_body = render_weekly_digest(
            upcoming,
            entries,
            self.config.catalog_entry_url,
            self.config.dashboard_url,
        )

        try:
            email_id = await self.notifier.send(
                self.config.notification_email,
                DIGEST_SUBJECT,
                html_body,
            )
        except Exception as e:
            self.logger.error("Failed to send weekly digest", error=str(e))
            return DigestOutcome(
                status=DigestStatus.FAILED,
                upcoming_count=len(upcoming),
                status_changes_count=len(entries),
                error=str(e),
            )

        self.logger.info("Weekly digest sent",
                         email_id=email_id,
                         upcoming=len(upcoming),
                         status_changes=len(entries))
        return DigestOutcome(
            status=DigestStatus.SENT,
            email_id=email_id,
            upcoming_count=len(upcoming),
            status_changes_count=len(entries),
        )

    async def _recent_changes(self, since: datetime, until: datetime) -> List[DigestEntry]:
        records = await self.record_store.find_status_changes_since(since)
        latest = latest_change_per_book(r for r in records if r.changed_at <= until)
        if not latest:
            return []

        books = {book.id: book for book in await self.record_store.find_books_by_ids(
            record.book_id for record in latest
        )}

        entries = []
        for record in latest:
            book = books.get(record.book_id)
            if book is None:
                self.logger.debug("Dropping history for missing book", book_id=record.book_id)
                continue
            entries.append(DigestEntry(
                book_id=book.id,
                title=book.title,
                author=book.author,
                old_status=record.old_status,
                new_status=record.new_status,
                changed_at=record.changed_at,
                current_status=book.library_status,
                catalog_id=book.catalog_id,
            ))
        return entries
