"""
Derivation of library status from a match decision, and the per-book plan
built from it.
"""

from datetime import datetime

from reconciler.models import MatchDecision, ReconciliationPlan, StatusChangeNotification
from tracker.models import LibraryStatus, StatusChangeRecord, StatusSource, TrackedBook


def derive_status(decision: MatchDecision) -> LibraryStatus:
    """
    Map a match decision to the status the catalog currently supports.

    The catalog cannot tell a hold anyone may place from a hold the reader
    placed, so on_hold and checked_out are never derived here.
    """
    if not decision.matched:
        return LibraryStatus.NOT_AVAILABLE

    result = decision.result
    if result.is_available and result.available_copies > 0:
        return LibraryStatus.AVAILABLE_TO_CHECKOUT
    if result.is_holdable:
        return LibraryStatus.AVAILABLE_TO_HOLD
    return LibraryStatus.NOT_AVAILABLE


def describe_match(decision: MatchDecision) -> str:
    if not decision.matched:
        return "No confident catalog match"
    return f"Matched catalog entry {decision.result.id} by {decision.strategy.value}"


def plan_reconciliation(
    book: TrackedBook,
    decision: MatchDecision,
    checked_at: datetime,
) -> ReconciliationPlan:
    """
    Decide what to write for a book given the match decision.

    Args:
        book: Book as read at the start of the run
        decision: Matcher output for the book's search results
        checked_at: Time of the catalog check

    Returns:
        ReconciliationPlan. For an unchanged status catalog_id is only set when
        a confident match links a new entry; for a changed status it is the
        matched id or None, which clears the link.
    """
    new_status = derive_status(decision)
    matched_id = decision.result.id if decision.matched else None

    if new_status == book.library_status:
        link = matched_id if matched_id and matched_id != book.catalog_id else None
        return ReconciliationPlan(
            book_id=book.id,
            old_status=book.library_status,
            new_status=new_status,
            catalog_id=link,
            checked_at=checked_at,
        )

    return ReconciliationPlan(
        book_id=book.id,
        old_status=book.library_status,
        new_status=new_status,
        catalog_id=matched_id,
        checked_at=checked_at,
        history_record=StatusChangeRecord(
            book_id=book.id,
            old_status=book.library_status,
            new_status=new_status,
            changed_at=checked_at,
            source=StatusSource.CATALOG_CHECK,
            notes=describe_match(decision),
        ),
        notification=StatusChangeNotification(
            book_id=book.id,
            title=book.title,
            author=book.author,
            old_status=book.library_status,
            new_status=new_status,
            catalog_id=matched_id,
        ),
    )
