"""
Logging configuration.

Configures the loguru logger with a stderr sink and a rotating file sink.
"""

import sys

from loguru import logger

from settlement.config.operational_constants import LOG_RETENTION, LOG_ROTATION
from settlement.config.settings import settings


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure logger with file rotation."""
    level = level or settings.log_level
    log_file = log_file if log_file is not None else settings.log_file

    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(
            log_file,
            rotation=LOG_ROTATION,
            retention=LOG_RETENTION,
            level=level,
            encoding="utf-8",
        )
