"""
Centralized logging configuration using loguru.
"""
from __future__ import annotations

import sys
from typing import Any

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(level: str = "INFO") -> None:
    """Replace every loguru sink with a single colorized stderr sink at `level`."""
    logger.remove()
    logger.add(sys.stderr, format=_FORMAT, level=level.upper(), colorize=True)


configure_logging("DEBUG")


def get_logger(name: str = __name__) -> Any:
    """
    Get a logger bound to a specific module name.

    Usage:
        from authproxy.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Accepted request from 127.0.0.1:53122")
    """
    return logger.bind(name=name)
