"""
Pydantic models for tracked releases and their status history.
Implements the book and audit record schemas stored in MongoDB.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field, field_validator


_IDENTIFIER_NOISE = re.compile(r"[\s-]+")


def normalize_identifier(raw: str) -> str:
    """Strip hyphens and spaces from an edition identifier and upper-case the check digit."""
    return _IDENTIFIER_NOISE.sub("", raw or "").upper()


class LibraryStatus(str, Enum):
    """Library availability status, ordered by reader-facing progress."""
    NOT_RELEASED = "not_released"
    NOT_AVAILABLE = "not_available"
    AVAILABLE_TO_HOLD = "available_to_hold"
    ON_HOLD = "on_hold"
    AVAILABLE_TO_CHECKOUT = "available_to_checkout"
    CHECKED_OUT = "checked_out"

    @property
    def rank(self) -> int:
        return list(LibraryStatus).index(self)

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    LibraryStatus.NOT_RELEASED: "Not Released",
    LibraryStatus.NOT_AVAILABLE: "Not Available",
    LibraryStatus.AVAILABLE_TO_HOLD: "Available to Hold",
    LibraryStatus.ON_HOLD: "On Hold",
    LibraryStatus.AVAILABLE_TO_CHECKOUT: "Borrow",
    LibraryStatus.CHECKED_OUT: "Checked Out",
}

# Statuses the reconciler keeps checking once a book is out
ELIGIBLE_STATUSES = (
    LibraryStatus.NOT_AVAILABLE,
    LibraryStatus.AVAILABLE_TO_HOLD,
    LibraryStatus.ON_HOLD,
)

# Statuses where the catalog entry is worth linking to
ACTIONABLE_STATUSES = (
    LibraryStatus.AVAILABLE_TO_HOLD,
    LibraryStatus.AVAILABLE_TO_CHECKOUT,
)


class StatusSource(str, Enum):
    """Origin of a status transition."""
    MANUAL = "manual"
    CATALOG_CHECK = "catalog_check"
    SYSTEM = "system"


class TrackedBook(BaseModel):
    """
    An anticipated release being monitored against the library catalog.
    """
    id: str = Field(..., description="Opaque unique identifier")

    # Bibliographic
    title: str = Field(..., min_length=1, description="Title of the book")
    author: str = Field(..., description="Author of the book")
    release_date: date = Field(..., description="Release date (no time component)")

    # Identifiers
    isbn: Optional[str] = Field(None, description="Primary edition identifier")
    all_isbns: List[str] = Field(default_factory=list, description="Identifiers across known editions")

    # External link
    catalog_id: Optional[str] = Field(None, description="Catalog entry id once confidently matched")

    # Status and tracking
    library_status: LibraryStatus = Field(default=LibraryStatus.NOT_RELEASED)
    last_checked_at: Optional[datetime] = Field(None, description="Last catalog check")
    notified_at: Optional[datetime] = Field(None, description="Last change notification")

    # Metadata
    notes: Optional[str] = Field(None, description="Personal notes")
    cover_url: Optional[str] = Field(None, description="Cover image URL")

    @field_validator('all_isbns', mode='before')
    @classmethod
    def validate_all_isbns(cls, v):
        """Treat a stored null as an empty identifier set."""
        if v is None:
            return []
        return v

    def alternate_identifiers(self) -> Set[str]:
        """Normalized identifiers collected across the book's known editions."""
        return {normalize_identifier(value) for value in self.all_isbns if normalize_identifier(value)}

    def is_released(self, today: date) -> bool:
        """Check whether the release date has been reached."""
        return self.release_date <= today

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TrackedBook":
        """Build a book from a MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document. Release dates are stored as ISO strings."""
        document = self.model_dump(exclude={"id"})
        document["_id"] = self.id
        document["release_date"] = self.release_date.isoformat()
        document["library_status"] = self.library_status.value
        return document


class StatusChangeRecord(BaseModel):
    """
    Immutable audit entry for one observed status transition.
    """
    book_id: str = Field(..., description="Tracked book identifier")
    old_status: Optional[LibraryStatus] = Field(None, description="Prior status, null for the first record")
    new_status: LibraryStatus = Field(..., description="Status after the transition")
    changed_at: datetime = Field(default_factory=datetime.utcnow)
    source: StatusSource = Field(..., description="What caused the transition")
    notes: Optional[str] = Field(None, description="Optional context")

    model_config = {"frozen": True}

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "StatusChangeRecord":
        """Build a record from a MongoDB document."""
        data = dict(document)
        data.pop("_id", None)
        return cls(**data)

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document."""
        return {
            "book_id": self.book_id,
            "old_status": self.old_status.value if self.old_status else None,
            "new_status": self.new_status.value,
            "changed_at": self.changed_at,
            "source": self.source.value,
            "notes": self.notes,
        }
