"""Log utilities."""

import logging
import os

from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Retrieve logger with the provided name."""
    logger = logging.getLogger(name)
    logger.setLevel(os.environ.get("TOKEN_LIMITER_LOG_LEVEL", "INFO").upper())
    logger.handlers = [RichHandler()]
    logger.propagate = False
    return logger
