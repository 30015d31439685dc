"""
API models and schemas for the trigger API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from reconciler.models import ItemOutcome, RunReport
from tracker.models import LibraryStatus, TrackedBook


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="API health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    status_code: int = Field(..., description="HTTP status code")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


class RunReportResponse(BaseModel):
    """Reconciliation run result."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float
    books_checked: int
    counts: Dict[str, int]
    outcomes: List[ItemOutcome]

    @classmethod
    def from_report(cls, report: RunReport) -> "RunReportResponse":
        return cls(
            run_id=report.run_id,
            started_at=report.started_at,
            completed_at=report.completed_at,
            duration_seconds=report.duration_seconds,
            books_checked=report.books_checked,
            counts=report.counts_by_outcome(),
            outcomes=report.outcomes,
        )


class StatusUpdateRequest(BaseModel):
    """Manual status edit."""
    status: LibraryStatus = Field(..., description="New library status")
    notes: Optional[str] = Field(None, max_length=500, description="Optional context for the history")


class BookStatusResponse(BaseModel):
    """Book status after a manual edit."""
    id: str
    title: str
    library_status: LibraryStatus
    catalog_id: Optional[str] = None

    @classmethod
    def from_book(cls, book: TrackedBook) -> "BookStatusResponse":
        return cls(
            id=book.id,
            title=book.title,
            library_status=book.library_status,
            catalog_id=book.catalog_id,
        )
