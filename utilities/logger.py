"""
Structured logging for the reconciler, scheduler and API processes.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory

FAILED_OUTCOMES = ("search_failed", "update_failed", "error")


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(config) -> None:
    """
    Configure structlog over stdlib logging from application settings.

    Args:
        config: AppConfig carrying log_level, log_format, log_file and debug
    """
    level = getattr(logging, config.log_level)
    handlers = [logging.StreamHandler(sys.stdout)]

    log_path = config.get_log_file_path()
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if config.debug:
        processors.append(structlog.processors.CallsiteParameterAdder({
            structlog.processors.CallsiteParameter.MODULE,
            structlog.processors.CallsiteParameter.LINENO,
        }))
    processors.append(_renderer(config.log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=config.log_level,
        format=config.log_format,
        file=str(log_path) if log_path else None,
    )


class RunLogger:
    """Logger for one reconciliation run; every entry carries the run id."""

    def __init__(self, run_id: str):
        self.logger = structlog.get_logger("reconciler.run").bind(run_id=run_id)

    def log_run_start(self, eligible_books: int) -> None:
        self.logger.info("Reconciliation run started", eligible_books=eligible_books)

    def log_book_outcome(self, title: str, outcome: str, **details) -> None:
        log = self.logger.warning if outcome in FAILED_OUTCOMES else self.logger.info
        log("Book reconciled", title=title, outcome=outcome, **details)

    def log_run_complete(self, summary: dict, duration_seconds: float) -> None:
        self.logger.info("Reconciliation run completed", duration_seconds=duration_seconds, **summary)

    def log_error(self, error: str, title: Optional[str] = None) -> None:
        self.logger.error("Reconciliation error occurred", error=error, title=title)
