"""
Tests for tracked book and status history models.
"""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from tracker.models import (
    ELIGIBLE_STATUSES, LibraryStatus, StatusChangeRecord, StatusSource,
    TrackedBook, normalize_identifier
)


class TestLibraryStatus:
    """Test cases for LibraryStatus."""

    def test_progress_order(self):
        ordered = sorted(LibraryStatus, key=lambda s: s.rank)
        assert ordered == [
            LibraryStatus.NOT_RELEASED,
            LibraryStatus.NOT_AVAILABLE,
            LibraryStatus.AVAILABLE_TO_HOLD,
            LibraryStatus.ON_HOLD,
            LibraryStatus.AVAILABLE_TO_CHECKOUT,
            LibraryStatus.CHECKED_OUT,
        ]

    def test_labels(self):
        assert LibraryStatus.AVAILABLE_TO_CHECKOUT.label == "Borrow"
        assert LibraryStatus.ON_HOLD.label == "On Hold"

    def test_eligible_statuses(self):
        assert LibraryStatus.AVAILABLE_TO_CHECKOUT not in ELIGIBLE_STATUSES
        assert LibraryStatus.CHECKED_OUT not in ELIGIBLE_STATUSES
        assert LibraryStatus.ON_HOLD in ELIGIBLE_STATUSES


class TestTrackedBook:
    """Test cases for TrackedBook."""

    def test_document_round_trip_fields(self):
        book = TrackedBook(
            id="b1",
            title="The Doors of Stone",
            author="Patrick Rothfuss",
            release_date=date(2024, 1, 16),
            all_isbns=["978-0-7564-0474-1"],
            library_status=LibraryStatus.AVAILABLE_TO_HOLD,
        )

        document = book.to_document()

        assert document["_id"] == "b1"
        assert "id" not in document
        assert document["release_date"] == "2024-01-16"
        assert document["library_status"] == "available_to_hold"
        assert TrackedBook.from_document(document) == book

    def test_defaults(self):
        book = TrackedBook(id="b1", title="T", author="A", release_date=date(2025, 5, 1))

        assert book.library_status == LibraryStatus.NOT_RELEASED
        assert book.all_isbns == []
        assert book.catalog_id is None

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            TrackedBook(id="b1", title="", author="A", release_date=date(2025, 5, 1))

    def test_alternate_identifiers_are_normalized(self):
        book = TrackedBook(id="b1", title="T", author="A", release_date=date(2025, 5, 1),
                           all_isbns=["0-8044-2957-x", " ", "9780756404741"])

        assert book.alternate_identifiers() == {"080442957X", "9780756404741"}

    def test_is_released(self):
        book = TrackedBook(id="b1", title="T", author="A", release_date=date(2024, 1, 23))

        assert book.is_released(date(2024, 1, 23))
        assert not book.is_released(date(2024, 1, 22))


class TestStatusChangeRecord:
    """Test cases for StatusChangeRecord."""

    def test_immutable(self):
        record = StatusChangeRecord(book_id="b1", new_status=LibraryStatus.ON_HOLD, source=StatusSource.MANUAL)

        with pytest.raises(ValidationError):
            record.new_status = LibraryStatus.CHECKED_OUT

    def test_first_record_has_no_old_status(self):
        record = StatusChangeRecord.from_document({
            "_id": "h1",
            "book_id": "b1",
            "old_status": None,
            "new_status": "not_released",
            "changed_at": datetime(2024, 1, 1),
            "source": "system",
        })

        assert record.old_status is None
        assert record.to_document()["old_status"] is None


def test_normalize_identifier():
    assert normalize_identifier("978-0 7564-0474-1") == "9780756404741"
    assert normalize_identifier("") == ""
