#!/usr/bin/env python3
"""
Main entry point for a scheduled backup run.
Loads configuration, sets up logging and hands over to the orchestrator.
"""

import sys
from typing import Optional

from restic_orchestrator.backup.backup_orchestrator import BackupOrchestrator
from restic_orchestrator.config.loader import ConfigLoader
from restic_orchestrator.core.exceptions import (
    ConfigurationError,
    EngineNotFoundError,
    LogDirectoryMissingError,
)
from restic_orchestrator.core.logger import setup_logging

# Exit status for runs aborted before any phase
FATAL_EXIT_CODE = 1


def main(config_path: Optional[str] = None) -> int:
    """
    Run one backup-and-maintenance cycle.

    Returns:
        Number of failed attempts, or FATAL_EXIT_CODE if the run aborted at startup
    """
    logger = setup_logging()

    try:
        settings = ConfigLoader.load(config_path)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return FATAL_EXIT_CODE

    log_file = str(settings.application_log) if settings.log_path.is_dir() else None
    logger = setup_logging(log_level=settings.log_level, log_file=log_file)

    orchestrator = BackupOrchestrator.from_settings(settings)

    try:
        return orchestrator.run()
    except (LogDirectoryMissingError, EngineNotFoundError) as e:
        logger.error(f"Aborting run: {e}")
        return FATAL_EXIT_CODE
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
        return FATAL_EXIT_CODE


if __name__ == "__main__":
    sys.exit(main())
