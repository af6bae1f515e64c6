"""
PaletteCam Structured Logging
Centralized logging configuration using loguru.
"""
import sys
from typing import Optional

from loguru import logger

from palettecam.config import config

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message} | {extra}"


def configure_logging(level: Optional[str] = None) -> int:
    """
    Install the stdout sink; calling again replaces it with the new level.

    Modules log through ``loguru.logger`` and attach structured fields with
    ``logger.bind(...)``; they show up in the ``{extra}`` column.

    Returns:
        The loguru handler id of the stdout sink
    """
    # Remove default handler
    logger.remove()

    return logger.add(
        sys.stdout,
        format=LOG_FORMAT,
        level=(level or config.LOG_LEVEL).upper(),
        serialize=False  # Set to True for JSON output
    )
