#!/usr/bin/env python3
"""
Script to run the Next Reads trigger API server.
"""

import uvicorn
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from utilities.config import AppConfig


def main():
    """Run the API server."""
    config = AppConfig()
    print("🚀 Starting Next Reads API Server")
    print(f"📡 Host: {config.api_host}")
    print(f"🔌 Port: {config.api_port}")
    print(f"📚 Database: {config.mongodb_database}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
