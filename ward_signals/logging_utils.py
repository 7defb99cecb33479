"""Logging utilities for the ward signal-analysis Lambdas."""

import logging
import sys
from typing import Optional

from .config import settings


def setup_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """Set up a logger writing to stdout with the configured format.

    Args:
        name: Logger name (defaults to root logger).
        level: Log level (defaults to settings.LOG_LEVEL).

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name) if name else logging.getLogger()

    log_level = level or settings.LOG_LEVEL
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Lambda containers are reused between invocations
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )

    logger.addHandler(handler)
    logger.propagate = False

    return logger
