#!/usr/bin/env python3
"""
Repository Tracker Service Entry Point

This script starts the Repository Tracker service.
"""

import uvicorn

from config.settings import get_settings


def main():
    """Start the Repository Tracker service."""
    settings = get_settings()

    uvicorn.run(
        "services.repo_tracker.main:app",
        host=settings.service.host,
        port=settings.service.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else settings.monitoring.log_level.lower(),
    )


if __name__ == "__main__":
    main()
