"""
Main entry point for an on-demand library check.

Usage:
    python main.py           Run one reconciliation pass ("check now")
    python main.py --digest  Build and send the weekly digest now
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
from reconciler.run_lock import RunInProgressError
from reconciler.services import ReconcilerServices
from utilities.config import AppConfig
from utilities.logger import setup_logging


async def main(argv) -> int:
    """Run the requested trigger once and return the process exit code."""
    config = AppConfig()
    setup_logging(config)

    logger = structlog.get_logger(__name__)

    send_digest = False
    if len(argv) > 1:
        if argv[1] == '--digest':
            send_digest = True
        else:
            print(f"Unknown argument: {argv[1]}")
            print("Usage: python main.py [--digest]")
            return 2

    services = None
    try:
        services = await ReconcilerServices.create(config)

        if send_digest:
            outcome = await services.trigger_weekly_digest()
            logger.info("Weekly digest finished",
                        status=outcome.status.value,
                        email_id=outcome.email_id,
                        error=outcome.error)
            return 1 if outcome.status.value == 'failed' else 0

        report = await services.trigger_reconciliation()
        logger.info("Library check finished",
                    run_id=report.run_id,
                    duration_seconds=report.duration_seconds,
                    **report.summary())
        return 0

    except RunInProgressError as e:
        logger.warning("Another run is in progress", error=str(e))
        return 0

    except Exception as e:
        logger.error("Fatal error occurred", error=str(e))
        return 1

    finally:
        if services is not None:
            await services.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv)))
