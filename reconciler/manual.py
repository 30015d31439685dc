"""
Administrative status edits.
"""

from datetime import datetime
from typing import Optional

import structlog

from tracker.database import RecordStoreError
from tracker.models import LibraryStatus, StatusChangeRecord, StatusSource, TrackedBook

logger = structlog.get_logger(__name__)


class BookNotFoundError(Exception):
    """Raised when a book id does not exist."""


async def set_manual_status(
    record_store,
    book_id: str,
    status: LibraryStatus,
    notes: Optional[str] = None,
) -> TrackedBook:
    """
    Set a book's status by hand and record it in the history.

    Keeps the current catalog link. Setting the status a book already has
    changes nothing and appends no history.

    Args:
        record_store: Store for books and status history
        book_id: Book identifier
        status: New status, any value including on_hold and checked_out
        notes: Optional context for the history row

    Returns:
        The book as stored after the edit

    Raises:
        BookNotFoundError: if the book does not exist
        RecordStoreError: if the book changed concurrently or a write failed
    """
    book = await record_store.get_book(book_id)
    if book is None:
        raise BookNotFoundError(f"Book {book_id} not found")

    if book.library_status == status:
        logger.info("Manual status unchanged", book_id=book_id, status=status.value)
        return book

    now = datetime.utcnow()
    updated = await record_store.update_status(
        book_id,
        expected_status=book.library_status,
        new_status=status,
        catalog_id=book.catalog_id,
    )
    if not updated:
        raise RecordStoreError(f"Book {book_id} was modified concurrently")

    await record_store.append_status_change(StatusChangeRecord(
        book_id=book_id,
        old_status=book.library_status,
        new_status=status,
        changed_at=now,
        source=StatusSource.MANUAL,
        notes=notes,
    ))

    logger.info("Manual status set",
                book_id=book_id,
                old_status=book.library_status.value,
                new_status=status.value)
    return book.model_copy(update={"library_status": status})
