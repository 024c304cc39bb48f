"""
Logging setup for the roof inspection service.

Submissions run on a Submit-<id> thread and fan out uploads to
Upload-<bucket> pool threads, so the thread name is printed on every line.

Log Format:
    2026-03-02 09:12:44 [INFO    ] [MainThread] roof_inspection.app - Starting service
    2026-03-02 09:12:51 [INFO    ] [Submit-3f2a9c1e] roof_inspection.submission.3f2a9c1e - Uploading 4 file(s) to defectPhoto

Usage:
    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    logger = get_logger(__name__)
    submission_logger = get_submission_logger(submission_id)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "roof_inspection"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(threadName)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _handler(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure the roof_inspection logger tree.

    Console output always; with file logging, a rotating app log plus a
    separate ERROR log under log_dir (default ./logs next to this file).
    Safe to call more than once, handlers are replaced.

    Returns:
        The application root logger
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), log_level, formatter))

    if enable_file_logging:
        log_dir = log_dir or Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        for filename, level in ((f"{APP_LOGGER_NAME}.log", log_level), (f"{APP_LOGGER_NAME}_error.log", logging.ERROR)):
            rotating = RotatingFileHandler(
                filename=log_dir / filename,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
            logger.addHandler(_handler(rotating, level, formatter))

        logger.info(f"File logging enabled in {log_dir}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the roof_inspection namespace."""
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_submission_logger(submission_id: str) -> logging.Logger:
    """
    Logger for one submission attempt.

    Named roof_inspection.submission.<first 8 chars of the id>, so one
    attempt can be grepped out of an interleaved log.
    """
    return logging.getLogger(f"{APP_LOGGER_NAME}.submission.{submission_id[:8]}")
