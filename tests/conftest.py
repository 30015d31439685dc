"""
Pytest configuration and shared fixtures.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

import pytest

from catalog.client import CatalogSearchError
from catalog.models import CatalogSearchResult
from tracker.models import LibraryStatus, StatusChangeRecord, TrackedBook
from utilities.config import AppConfig


FIXED_NOW = datetime(2024, 1, 23, 9, 0, 0)


class InMemoryRecordStore:
    """Record store backed by dicts, with the same async surface as MongoRecordStore."""

    def __init__(self, books: Optional[List[TrackedBook]] = None):
        self.books: Dict[str, TrackedBook] = {book.id: book for book in books or []}
        self.history: List[StatusChangeRecord] = []
        self.eligibility_error: Optional[Exception] = None
        self.update_error: Optional[Exception] = None
        self.history_error: Optional[Exception] = None
        self.append_error: Optional[Exception] = None
        self.checked_ids: List[str] = []

    def add(self, *books: TrackedBook) -> None:
        for book in books:
            self.books[book.id] = book

    async def find_books_released_by(self, today: date, statuses) -> List[TrackedBook]:
        if self.eligibility_error:
            raise self.eligibility_error
        statuses = set(statuses)
        found = [b for b in self.books.values()
                 if b.release_date <= today and b.library_status in statuses]
        return sorted(found, key=lambda b: b.release_date)

    async def find_books_releasing_between(self, start: date, end: date) -> List[TrackedBook]:
        if self.history_error:
            raise self.history_error
        found = [b for b in self.books.values() if start <= b.release_date <= end]
        return sorted(found, key=lambda b: b.release_date)

    async def find_books_by_ids(self, book_ids) -> List[TrackedBook]:
        return [self.books[i] for i in book_ids if i in self.books]

    async def get_book(self, book_id: str) -> Optional[TrackedBook]:
        return self.books.get(book_id)

    async def find_status_changes_since(self, since: datetime) -> List[StatusChangeRecord]:
        if self.history_error:
            raise self.history_error
        found = [r for r in self.history if r.changed_at >= since]
        return sorted(found, key=lambda r: r.changed_at, reverse=True)

    async def update_status(self, book_id, expected_status, new_status, catalog_id, checked_at=None) -> bool:
        if self.update_error:
            raise self.update_error
        book = self.books.get(book_id)
        if book is None or book.library_status != expected_status:
            return False
        fields = {"library_status": new_status, "catalog_id": catalog_id}
        if checked_at is not None:
            fields["last_checked_at"] = checked_at
            self.checked_ids.append(book_id)
        self.books[book_id] = book.model_copy(update=fields)
        return True

    async def mark_checked(self, book_id, checked_at, catalog_id=None) -> bool:
        if self.update_error:
            raise self.update_error
        book = self.books.get(book_id)
        if book is None:
            return False
        fields = {"last_checked_at": checked_at}
        if catalog_id is not None:
            fields["catalog_id"] = catalog_id
        self.books[book_id] = book.model_copy(update=fields)
        self.checked_ids.append(book_id)
        return True

    async def mark_notified(self, book_id, notified_at) -> None:
        book = self.books[book_id]
        self.books[book_id] = book.model_copy(update={"notified_at": notified_at})

    async def append_status_change(self, record: StatusChangeRecord) -> None:
        if self.append_error:
            raise self.append_error
        self.history.append(record)

    async def health_check(self):
        return {"status": "healthy"}


class FakeCatalog:
    """Catalog provider returning canned results per title."""

    def __init__(self, results: Optional[Dict[str, object]] = None):
        self.results = results or {}
        self.queries: List[str] = []

    async def search(self, query: str) -> List[CatalogSearchResult]:
        self.queries.append(query)
        value = self.results.get(query, [])
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        pass


class FakeNotifier:
    """Notifier that records sends, optionally failing."""

    def __init__(self, error: Optional[Exception] = None):
        self.sent: List[dict] = []
        self.error = error

    async def send(self, recipient: str, subject: str, html_body: str) -> str:
        if self.error:
            raise self.error
        self.sent.append({"to": recipient, "subject": subject, "html": html_body})
        return f"email_{len(self.sent)}"

    async def close(self) -> None:
        pass


def build_book(book_id: str = "book_1", title: str = "The Doors of Stone", **overrides) -> TrackedBook:
    """Build a tracked book with sensible defaults."""
    fields = {
        "id": book_id,
        "title": title,
        "author": "Patrick Rothfuss",
        "release_date": date(2024, 1, 16),
        "library_status": LibraryStatus.NOT_AVAILABLE,
    }
    fields.update(overrides)
    return TrackedBook(**fields)


def build_result(
    result_id: str = "cat_1",
    title: str = "Doors of Stone",
    isbns=(),
    available: bool = False,
    holdable: bool = False,
    copies: int = 0,
    holds: int = 0,
) -> CatalogSearchResult:
    """Build a catalog result the way the provider would send it."""
    return CatalogSearchResult.model_validate({
        "id": result_id,
        "title": title,
        "formats": [{"id": "ebook-overdrive", "isbn": isbn} for isbn in isbns],
        "isAvailable": available,
        "isHoldable": holdable,
        "availableCopies": copies,
        "holdsCount": holds,
    })


@pytest.fixture
def app_config():
    """Configuration with notifications enabled and no .env file."""
    return AppConfig(
        _env_file=None,
        resend_api_key="re_test_key",
        notification_email="reader@example.com",
        catalog_request_delay=0,
        api_keys="test-key",
    )


@pytest.fixture
def unconfigured_config():
    """Configuration without any notification channel."""
    return AppConfig(_env_file=None, resend_api_key=None, notification_email=None)


@pytest.fixture
def clock():
    """Fixed naive UTC clock."""
    return lambda: FIXED_NOW


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def fake_notifier():
    return FakeNotifier()


@pytest.fixture
def search_error():
    return CatalogSearchError("Catalog search returned 503 for 'x'")


@pytest.fixture
def make_book():
    return build_book


@pytest.fixture
def make_result():
    return build_result
