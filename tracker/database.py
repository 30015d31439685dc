"""
MongoDB record store for tracked books and status history.
Handles connection, indexing, queries and single-document updates used by the reconciler.
"""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure, PyMongoError
from pydantic import ValidationError
import structlog

from .models import LibraryStatus, StatusChangeRecord, TrackedBook

logger = structlog.get_logger(__name__)


class RecordStoreError(Exception):
    """Raised when a record store query or write cannot be performed."""


class MongoRecordStore:
    """
    Async MongoDB store for books and status history.
    Every write touches a single document, which MongoDB applies atomically.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        books_collection: str = "books",
        history_collection: str = "status_history",
        timeout_ms: int = 10000,
    ):
        """
        Initialize the record store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            books_collection: Collection holding tracked books
            history_collection: Collection holding status history
            timeout_ms: Bound for server selection, connect and socket operations
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.books_collection_name = books_collection
        self.history_collection_name = history_collection
        self.timeout_ms = timeout_ms
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self.books: Optional[AsyncIOMotorCollection] = None
        self.history: Optional[AsyncIOMotorCollection] = None

    @classmethod
    def from_config(cls, config) -> "MongoRecordStore":
        """Create a store from application configuration."""
        return cls(
            connection_url=config.mongodb_url,
            database_name=config.mongodb_database,
            books_collection=config.books_collection,
            history_collection=config.history_collection,
            timeout_ms=config.mongodb_timeout_ms,
        )

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(
                self.connection_url,
                serverSelectionTimeoutMS=self.timeout_ms,
                connectTimeoutMS=self.timeout_ms,
                socketTimeoutMS=self.timeout_ms,
                tz_aware=False,
            )
            self.database = self.client[self.database_name]
            self.books = self.database[self.books_collection_name]
            self.history = self.database[self.history_collection_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB",
                        database=self.database_name,
                        books=self.books_collection_name,
                        history=self.history_collection_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise RecordStoreError(f"Failed to connect to MongoDB: {e}") from e

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create indexes for the reconciliation and digest query patterns."""
        try:
            await self.books.create_index("release_date")
            await self.books.create_index("library_status")
            await self.books.create_index([("library_status", 1), ("release_date", 1)])
            await self.books.create_index("all_isbns")

            await self.history.create_index("book_id")
            await self.history.create_index([("changed_at", -1)])

            logger.info("Successfully created MongoDB indexes")

        except PyMongoError as e:
            logger.error("Failed to create indexes", error=str(e))
            raise RecordStoreError(f"Failed to create indexes: {e}") from e

    async def _find_books(self, query: Dict[str, Any], sort_field: str = "release_date") -> List[TrackedBook]:
        cursor = self.books.find(query).sort(sort_field, 1)
        books = []
        async for document in cursor:
            try:
                books.append(TrackedBook.from_document(document))
            except ValidationError as e:
                logger.warning("Skipping malformed book document",
                               book_id=str(document.get("_id")), error=str(e))
        return books

    async def find_books_released_by(
        self,
        today: date,
        statuses: Iterable[LibraryStatus],
    ) -> List[TrackedBook]:
        """
        Select books whose release date is on or before today and whose status is in the given set.

        Args:
            today: Current calendar date
            statuses: Statuses to include

        Returns:
            Matching books ordered by release date
        """
        status_values = [status.value for status in statuses]
        try:
            books = await self._find_books({
                "release_date": {"$lte": today.isoformat()},
                "library_status": {"$in": status_values},
            })
            logger.debug("Retrieved released books", today=today.isoformat(),
                         statuses=status_values, count=len(books))
            return books

        except PyMongoError as e:
            logger.error("Failed to query released books", error=str(e))
            raise RecordStoreError(f"Failed to query released books: {e}") from e

    async def find_books_releasing_between(self, start: date, end: date) -> List[TrackedBook]:
        """Select books with a release date in [start, end], earliest first."""
        try:
            return await self._find_books({
                "release_date": {"$gte": start.isoformat(), "$lte": end.isoformat()},
            })

        except PyMongoError as e:
            logger.error("Failed to query upcoming releases", error=str(e))
            raise RecordStoreError(f"Failed to query upcoming releases: {e}") from e

    async def find_books_by_ids(self, book_ids: Iterable[str]) -> List[TrackedBook]:
        """Select books by identifier. Unknown identifiers are ignored."""
        ids = list(book_ids)
        if not ids:
            return []
        try:
            return await self._find_books({"_id": {"$in": ids}})

        except PyMongoError as e:
            logger.error("Failed to query books by id", count=len(ids), error=str(e))
            raise RecordStoreError(f"Failed to query books by id: {e}") from e

    async def get_book(self, book_id: str) -> Optional[TrackedBook]:
        """Retrieve a single book by identifier."""
        try:
            document = await self.books.find_one({"_id": book_id})
        except PyMongoError as e:
            logger.error("Failed to retrieve book", book_id=book_id, error=str(e))
            raise RecordStoreError(f"Failed to retrieve book {book_id}: {e}") from e

        if document:
            return TrackedBook.from_document(document)
        return None

    async def find_status_changes_since(self, since: datetime) -> List[StatusChangeRecord]:
        """Select status history rows changed at or after the given time, newest first."""
        try:
            cursor = self.history.find({"changed_at": {"$gte": since}}).sort("changed_at", -1)
            records = []
            async for document in cursor:
                records.append(StatusChangeRecord.from_document(document))
            return records

        except PyMongoError as e:
            logger.error("Failed to query status history", since=since.isoformat(), error=str(e))
            raise RecordStoreError(f"Failed to query status history: {e}") from e

    async def update_status(
        self,
        book_id: str,
        expected_status: LibraryStatus,
        new_status: LibraryStatus,
        catalog_id: Optional[str],
        checked_at: Optional[datetime] = None,
    ) -> bool:
        """
        Set status and catalog link on a book, provided its stored status is still the expected one.

        Args:
            book_id: Book identifier
            expected_status: Status observed before the decision was made
            new_status: Status to store
            catalog_id: Catalog entry id, or None to clear the link
            checked_at: Catalog check time, left untouched when None

        Returns:
            True if the book was updated, False if it was missing or had changed meanwhile
        """
        now = datetime.utcnow()
        fields = {
            "library_status": new_status.value,
            "catalog_id": catalog_id,
            "updated_at": now,
        }
        if checked_at is not None:
            fields["last_checked_at"] = checked_at

        try:
            result = await self.books.update_one(
                {"_id": book_id, "library_status": expected_status.value},
                {"$set": fields},
            )
            return result.matched_count == 1

        except PyMongoError as e:
            logger.error("Failed to update book status", book_id=book_id, error=str(e))
            raise RecordStoreError(f"Failed to update book {book_id}: {e}") from e

    async def mark_checked(
        self,
        book_id: str,
        checked_at: datetime,
        catalog_id: Optional[str] = None,
    ) -> bool:
        """
        Refresh the checked-at timestamp, and record a catalog link when one is given.

        Returns:
            True if the book exists
        """
        fields: Dict[str, Any] = {"last_checked_at": checked_at}
        if catalog_id is not None:
            fields["catalog_id"] = catalog_id

        try:
            result = await self.books.update_one({"_id": book_id}, {"$set": fields})
            return result.matched_count == 1

        except PyMongoError as e:
            logger.error("Failed to refresh book check time", book_id=book_id, error=str(e))
            raise RecordStoreError(f"Failed to refresh book {book_id}: {e}") from e

    async def mark_notified(self, book_id: str, notified_at: datetime) -> None:
        """Record when the last change notification went out."""
        try:
            await self.books.update_one({"_id": book_id}, {"$set": {"notified_at": notified_at}})

        except PyMongoError as e:
            logger.error("Failed to record notification time", book_id=book_id, error=str(e))
            raise RecordStoreError(f"Failed to record notification for {book_id}: {e}") from e

    async def append_status_change(self, record: StatusChangeRecord) -> None:
        """Append one row to the status history."""
        try:
            await self.history.insert_one(record.to_document())
            logger.debug("Appended status change",
                         book_id=record.book_id,
                         old_status=record.old_status.value if record.old_status else None,
                         new_status=record.new_status.value,
                         source=record.source.value)

        except PyMongoError as e:
            logger.error("Failed to append status change", book_id=record.book_id, error=str(e))
            raise RecordStoreError(f"Failed to append status change for {record.book_id}: {e}") from e

    async def health_check(self) -> Dict[str, Any]:
        """Ping the server."""
        try:
            await self.client.admin.command('ping')
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
