"""
Models for reconciliation and digest results.

This module defines Pydantic models for:
- Match decisions produced by the catalog matcher
- Per-book outcomes and the run report
- Change notification instructions
- Weekly digest outcomes
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from catalog.models import CatalogSearchResult
from tracker.models import LibraryStatus, StatusChangeRecord


class MatchStrategy(str, Enum):
    """How a catalog entry was matched to a tracked book."""
    IDENTIFIER = "identifier_match"
    NORMALIZED_TITLE = "normalized_title_match"


class MatchDecision(BaseModel):
    """Either a confident match with its strategy, or unmatched."""
    result: Optional[CatalogSearchResult] = Field(default=None)
    strategy: Optional[MatchStrategy] = Field(default=None)

    @property
    def matched(self) -> bool:
        return self.result is not None

    @classmethod
    def match(cls, result: CatalogSearchResult, strategy: MatchStrategy) -> "MatchDecision":
        return cls(result=result, strategy=strategy)

    @classmethod
    def unmatched(cls) -> "MatchDecision":
        return cls()


class OutcomeType(str, Enum):
    """Per-book result of a reconciliation pass."""
    STATUS_CHANGED = "status_changed"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
    SEARCH_FAILED = "search_failed"
    UPDATE_FAILED = "update_failed"
    ERROR = "error"


class ItemOutcome(BaseModel):
    """Outcome for one book in a run."""
    book_id: str = Field(..., description="Tracked book identifier")
    title: str = Field(..., description="Book title")
    outcome: OutcomeType = Field(..., description="What happened to the book")
    old_status: Optional[LibraryStatus] = Field(default=None)
    new_status: Optional[LibraryStatus] = Field(default=None)
    match_strategy: Optional[MatchStrategy] = Field(default=None)
    catalog_id: Optional[str] = Field(default=None)
    available_copies: Optional[int] = Field(default=None)
    holds_count: Optional[int] = Field(default=None)
    notified: bool = Field(default=False)
    detail: Optional[str] = Field(default=None, description="Error or context text")


class RunReport(BaseModel):
    """Result of one reconciliation run."""
    run_id: str = Field(..., description="Unique run identifier")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = Field(default=None)
    books_checked: int = Field(default=0)
    outcomes: List[ItemOutcome] = Field(default_factory=list)

    def count(self, outcome: OutcomeType) -> int:
        return sum(1 for item in self.outcomes if item.outcome == outcome)

    def counts_by_outcome(self) -> Dict[str, int]:
        return {outcome.value: self.count(outcome) for outcome in OutcomeType}

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> Dict[str, int]:
        """Counts suitable for logging."""
        summary = {"books_checked": self.books_checked}
        summary.update(self.counts_by_outcome())
        return summary


class StatusChangeNotification(BaseModel):
    """Instruction to tell the reader about one status transition."""
    book_id: str
    title: str
    author: str
    old_status: LibraryStatus
    new_status: LibraryStatus
    catalog_id: Optional[str] = None


class ReconciliationPlan(BaseModel):
    """
    Writes and side effects decided for one book, before any I/O happens.

    When the status is unchanged only the check time (and catalog_id, if set)
    is written; otherwise the full status write, the history record and the
    optional notification are carried out in that order.
    """
    book_id: str
    old_status: LibraryStatus
    new_status: LibraryStatus
    catalog_id: Optional[str] = None
    checked_at: datetime
    history_record: Optional[StatusChangeRecord] = None
    notification: Optional[StatusChangeNotification] = None

    @property
    def changed(self) -> bool:
        return self.old_status != self.new_status


class DigestStatus(str, Enum):
    """Result of a weekly digest run."""
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class DigestEntry(BaseModel):
    """The latest status transition for one book within the digest window."""
    book_id: str
    title: str
    author: str
    old_status: Optional[LibraryStatus] = None
    new_status: LibraryStatus
    changed_at: datetime
    current_status: LibraryStatus
    catalog_id: Optional[str] = None


class DigestOutcome(BaseModel):
    """Result of a weekly digest run."""
    status: DigestStatus
    email_id: Optional[str] = Field(default=None)
    upcoming_count: int = Field(default=0)
    status_changes_count: int = Field(default=0)
    error: Optional[str] = Field(default=None)
    generated_at: datetime = Field(default_factory=datetime.utcnow)
