#!/usr/bin/env python3
"""
Logging configuration for restic-orchestrator.
Console output for the scheduler's captured stdout plus an optional application log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "restic_orchestrator"

# Mapping from string levels to logging constants
LOG_LEVELS = {
    "OFF": logging.CRITICAL + 10,    # Higher than CRITICAL = disable all
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,         # alias
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,       # alias
}


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Setup logging for the package logger.

    Args:
        log_level: Logging level as string (OFF, DEBUG, INFO, WARNING, ERROR)
        log_file: Path to the application log file, or None for stdout only

    Returns:
        Configured package logger

    Raises:
        ValueError: If log_level is invalid
    """
    level_str_upper = log_level.upper()
    if level_str_upper not in LOG_LEVELS:
        valid_levels = ", ".join(sorted(LOG_LEVELS.keys()))
        raise ValueError(
            f"Invalid log level: '{log_level}'. Must be one of: {valid_levels}"
        )

    numeric_level = LOG_LEVELS[level_str_upper]

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    if level_str_upper == "OFF":
        logger.propagate = False
        logger.addHandler(logging.NullHandler())
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # 1. Console handler (captured by cron / systemd / Task Scheduler)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # 2. File handler (persistent application log)
    if log_file:
        try:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

            logger.debug(f"File logging enabled: {log_file}")
        except OSError as e:
            logger.warning(f"Could not setup file logging: {e}")

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (usually module name)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
