"""
Logging configuration.

Diagnostics go to stderr so that stdout stays free for the response body
when the output destination is ``-``.
"""

import logging
import sys
from typing import Optional

from httpfetch.core.config import settings


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Level name; defaults to ``settings.log_level``.
        fmt: Record format; defaults to ``settings.log_format``.
    """
    level_name = level or settings.log_level
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    # Root logger config
    logging.basicConfig(
        level=log_level,
        format=fmt or settings.log_format,
        stream=sys.stderr,
        force=True,
    )

    # Quieten noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger with the application's configuration."""
    return logging.getLogger(name)
