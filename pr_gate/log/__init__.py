# AGPL-3.0 License

"""
Logging setup for PR-Gate.

All modules obtain the shared loguru logger through ``get_logger()``.
"""

import logging
import os
import sys
from enum import Enum

from loguru import logger


class LoggingFormat(str, Enum):
    CONSOLE = "CONSOLE"
    JSON = "JSON"


def inv_analytics_filter(record: dict) -> bool:
    return not record.get("extra", {}).get("analytics", False)


def setup_logger(level: str = "INFO", fmt: LoggingFormat = LoggingFormat.CONSOLE):
    """
    Configure the global logger sink.

    Args:
        level: Log level name (falls back to INFO when unknown)
        fmt: CONSOLE for human-readable output, JSON for one serialized record per line

    Returns:
        The configured loguru logger
    """
    level: int = logging.getLevelName(level.upper())
    if type(level) is not int:
        level = logging.INFO

    if fmt == LoggingFormat.JSON and os.getenv("LOG_SANE", "0").lower() == "0":
        logger.remove(None)
        logger.add(
            sys.stdout,
            filter=inv_analytics_filter,
            level=level,
            format="{message}",
            colorize=False,
            serialize=True,
        )
    elif fmt == LoggingFormat.CONSOLE:  # does not print the 'extra' fields
        logger.remove(None)
        logger.add(sys.stdout, level=level, colorize=True, filter=inv_analytics_filter)

    return logger


def get_logger(*args, **kwargs):
    return logger
