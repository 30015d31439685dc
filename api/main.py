"""
FastAPI application exposing the reconciliation triggers.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Depends, status
from fastapi.responses import JSONResponse

from api.auth import verify_api_key
from api.models import (
    BookStatusResponse, ErrorResponse, HealthResponse,
    RunReportResponse, StatusUpdateRequest
)
from reconciler.manual import BookNotFoundError, set_manual_status
from reconciler.models import DigestOutcome
from reconciler.run_lock import RunInProgressError
from reconciler.services import ReconcilerServices
from tracker.database import RecordStoreError
from utilities.config import AppConfig
from utilities.logger import setup_logging

API_VERSION = "1.0.0"

logger = structlog.get_logger(__name__)

# Connected components, set by the lifespan handler
services: Optional[ReconcilerServices] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global services
    config = app.state.config
    setup_logging(config)
    logger.info("Starting Next Reads API")

    try:
        services = await ReconcilerServices.create(config)
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    yield

    logger.info("Shutting down Next Reads API")
    await services.close()
    services = None


app = FastAPI(
    title="Next Reads API",
    description="""
    Triggers for the library availability tracker.

    * **Reconciliation**: check released books against the library catalog now
    * **Weekly digest**: send the weekly summary email now
    * **Manual status**: record holds and checkouts placed by hand

    All endpoints except `/health` require an API key in the Authorization header:

    ```
    Authorization: Bearer your_api_key_here
    ```
    """,
    version=API_VERSION,
    lifespan=lifespan
)
app.state.config = AppConfig()


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            status_code=exc.status_code
        ).model_dump(mode="json"),
        headers=exc.headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if request.app.state.config.debug else None,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ).model_dump(mode="json")
    )


def _require_services() -> ReconcilerServices:
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not available"
        )
    return services


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    db_status = "unavailable"
    if services is not None:
        health_info = await services.record_store.health_check()
        db_status = health_info.get("status", "unknown")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.utcnow(),
        version=API_VERSION,
        database_status=db_status
    )


@app.post("/reconciliation/run", response_model=RunReportResponse, tags=["Reconciliation"])
async def run_reconciliation(api_key: str = Depends(verify_api_key)):
    """
    Check every eligible book against the catalog now.

    Returns 409 while another run is in progress.
    """
    active = _require_services()
    try:
        report = await active.trigger_reconciliation()
    except RunInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except RecordStoreError as e:
        logger.error("Reconciliation run failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Reconciliation run failed: {e}"
        )

    return RunReportResponse.from_report(report)


@app.post("/digest/send", response_model=DigestOutcome, tags=["Digest"])
async def send_digest(api_key: str = Depends(verify_api_key)):
    """Build and send the weekly digest now."""
    active = _require_services()
    try:
        return await active.trigger_weekly_digest()
    except RunInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@app.patch("/books/{book_id}/status", response_model=BookStatusResponse, tags=["Books"])
async def update_book_status(
    book_id: str,
    update: StatusUpdateRequest,
    api_key: str = Depends(verify_api_key)
):
    """
    Set a book's library status by hand.

    - **status**: any library status, including on_hold and checked_out
    - **notes**: optional context stored with the history row
    """
    active = _require_services()
    try:
        book = await set_manual_status(active.record_store, book_id, update.status, update.notes)
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RecordStoreError as e:
        logger.error("Manual status update failed", book_id=book_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update book: {e}"
        )

    return BookStatusResponse.from_book(book)
