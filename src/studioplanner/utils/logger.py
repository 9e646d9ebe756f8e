"""Logging helpers shared by every module.

Library modules only fetch loggers. Applications call ``configure_logging``
to send records somewhere.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PACKAGE_LOGGER = "studioplanner"

_LOGGER_INITIALIZED = False

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once.

    Args:
        level: Log level name. Defaults to INFO.
    """
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = (level or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=resolved_level,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return the logger for the requested module."""
    return logging.getLogger(name)
