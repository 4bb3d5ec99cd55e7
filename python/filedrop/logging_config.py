"""
Logging configuration for filedrop.

With a log directory, logs go to <log_dir>/filedrop-YYYY-MM-DD.log (new file
each day). Console logging to stderr can be enabled alongside (or instead of)
the file via console=True.
"""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class FlushingHandler(logging.handlers.TimedRotatingFileHandler):
    """Handler that flushes after every emit for immediate visibility."""

    def emit(self, record):
        super().emit(record)
        self.flush()


def setup_logging(
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    backup_count: int = 30,  # Keep 30 days of logs
    console: bool = False,
) -> logging.Logger:
    """
    Set up logging for filedrop with daily rotation.

    Args:
        log_dir: Directory for log files (None: no file logging)
        level: Logging level (default: INFO)
        backup_count: Number of daily backup files to keep (default: 30 days)
        console: If True, also log to stderr

    Returns:
        Configured "filedrop" logger
    """
    logger = logging.getLogger("filedrop")
    logger.setLevel(level)

    # Check existing handlers to avoid duplicates
    has_file_handler = any(isinstance(h, FlushingHandler) for h in logger.handlers)
    has_console_handler = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    )

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None and not has_file_handler:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"filedrop-{datetime.now().strftime('%Y-%m-%d')}.log"

        file_handler = FlushingHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info("=" * 60)
        logger.info("filedrop - Logging Initialized")
        logger.info(f"Log file: {log_file}")
        logger.info(f"Log level: {logging.getLevelName(level)}")
        logger.info(f"Rotation: Daily at midnight, keeping {backup_count} days")
        logger.info("=" * 60)

    if console and not has_console_handler:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str = "filedrop") -> logging.Logger:
    """
    Get filedrop logger instance.

    Args:
        name: Logger name (default: "filedrop")

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
