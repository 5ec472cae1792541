"""
Logging configuration helpers.
Every entrypoint calls `configure_logging` once; engine modules only create named loggers.
"""

from __future__ import annotations

import logging

from src.common.settings import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_LOGGING_CONFIGURED = False


def configure_logging() -> None:
    """Configure process-wide logging from environment settings."""

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings()
    level_name = settings.LOG_LEVEL.upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("occupancy_pricing").setLevel(level)
    _LOGGING_CONFIGURED = True
