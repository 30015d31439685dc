"""
Main entry point for the scheduler daemon.

Runs the library check daily and the weekly digest once a week.

Usage:
    python scheduler_main.py         Run as a daemon
    python scheduler_main.py --once  Run one library check and exit
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

import structlog
from utilities.logger import setup_logging
from utilities.config import AppConfig
from reconciler.services import ReconcilerServices
from reconciler.scheduler_service import SchedulerService


async def main():
    """Main function to start the scheduler service."""
    config = AppConfig()
    setup_logging(config)

    logger = structlog.get_logger(__name__)

    run_once = False
    if len(sys.argv) > 1:
        if sys.argv[1] == '--once':
            run_once = True
        else:
            print(f"Unknown argument: {sys.argv[1]}")
            print("Usage: python scheduler_main.py [--once]")
            sys.exit(1)

    if run_once:
        print("\n" + "=" * 60)
        print("🔄 RUN ONCE MODE")
        print("=" * 60)
        print("✅ Library check: single run")
        print("=" * 60)
    else:
        print("\n" + "=" * 60)
        print("🏭 DAEMON MODE")
        print("=" * 60)
        print(f"✅ Library check: daily at {config.check_hour:02d}:{config.check_minute:02d} {config.timezone}")
        print(f"✅ Weekly digest: {config.digest_day_of_week} at "
              f"{config.digest_hour:02d}:{config.digest_minute:02d} {config.timezone}")
        print("=" * 60)

    services = None
    try:
        services = await ReconcilerServices.create(config)
        scheduler_service = SchedulerService(services)
        await scheduler_service.start(run_once=run_once)

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")

    except Exception as e:
        logger.error("Failed to start scheduler service", error=str(e))
        sys.exit(1)

    finally:
        if services is not None:
            await services.close()


if __name__ == "__main__":
    asyncio.run(main())
