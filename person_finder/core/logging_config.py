"""Logging configuration for the person finder.

Structured console logging with timestamps, module names and
configurable log levels, plus an optional plain-text log file.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours the level name when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def format(self, record: logging.LogRecord) -> str:
        if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
            return super().format(record)

        # Work on a copy so file handlers sharing the record stay uncoloured
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{self.BOLD}{record.levelname}{self.RESET}"
            record.name = f"{self.BOLD}{record.name}{self.RESET}"
        return super().format(record)


def _resolve_defaults(
    level: Optional[str], log_file: Optional[str]
) -> tuple[str, Optional[str]]:
    """Fill unset level/log file from the environment config."""
    if level is not None:
        return level, log_file

    try:
        from person_finder.core.config import get_config

        config = get_config()
    except (ValueError, OSError):
        return "INFO", log_file

    return config.log_level, log_file or config.log_file


def setup_logging(
    name: str = "person_finder",
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Setup and configure a logger with consistent formatting.

    Args:
        name: Logger name (usually the module name)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, read from the environment via Config.
        log_file: Optional file path to also log to a file.

    Returns:
        Configured logger instance.

    Example:
        >>> logger = setup_logging(__name__)
        >>> logger.info("Gallery scan started")
    """
    logger = logging.getLogger(name)

    # Already configured, avoid duplicate handlers
    if logger.handlers:
        return logger

    level, log_file = _resolve_defaults(level, log_file)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logger.level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logger.level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get logger for a specific module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance.
    """
    return setup_logging(name)
