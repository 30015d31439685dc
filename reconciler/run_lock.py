"""
Run-in-progress marker stored in MongoDB.

A lock is a document keyed by job name. Inserting it acquires the lock; the
unique _id makes a second insert fail while the first holder is running.
Locks carry an expiry so a crashed run cannot block later ones forever.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable, Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError, PyMongoError
import structlog

from tracker.database import RecordStoreError

logger = structlog.get_logger(__name__)


class RunInProgressError(Exception):
    """Raised when another holder owns the lock."""

    def __init__(self, name: str):
        super().__init__(f"A '{name}' run is already in progress")
        self.name = name


class RunLock:
    """Named mutual exclusion across processes sharing one database."""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        ttl: timedelta = timedelta(minutes=60),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.collection = collection
        self.ttl = ttl
        self.clock = clock or datetime.utcnow
        self.logger = logger.bind(component="run_lock")

    async def ensure_indexes(self) -> None:
        """Let MongoDB remove expired locks on its own."""
        try:
            await self.collection.create_index("expires_at", expireAfterSeconds=0)
        except PyMongoError as e:
            raise RecordStoreError(f"Failed to create lock index: {e}") from e

    async def acquire(self, name: str) -> Optional[str]:
        """
        Try to take the lock.

        Returns:
            Owner token, or None if another holder owns an unexpired lock
        """
        now = self.clock()
        owner = uuid.uuid4().hex
        try:
            # TTL deletion runs periodically, so drop an expired lock eagerly
            await self.collection.delete_one({"_id": name, "expires_at": {"$lte": now}})
            await self.collection.insert_one({
                "_id": name,
                "owner": owner,
                "acquired_at": now,
                "expires_at": now + self.ttl,
            })

        except DuplicateKeyError:
            self.logger.info("Lock already held", name=name)
            return None

        except PyMongoError as e:
            raise RecordStoreError(f"Failed to acquire lock '{name}': {e}") from e

        self.logger.debug("Lock acquired", name=name, owner=owner)
        return owner

    async def release(self, name: str, owner: str) -> None:
        """Release the lock if it is still ours."""
        try:
            await self.collection.delete_one({"_id": name, "owner": owner})
            self.logger.debug("Lock released", name=name, owner=owner)
        except PyMongoError as e:
            self.logger.error("Failed to release lock", name=name, error=str(e))

    @asynccontextmanager
    async def hold(self, name: str):
        """
        Hold the lock for the duration of the block.

        Raises:
            RunInProgressError: if the lock is already held
        """
        owner = await self.acquire(name)
        if owner is None:
            raise RunInProgressError(name)
        try:
            yield owner
        finally:
            await self.release(name, owner)
