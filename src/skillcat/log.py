"""Loguru sink configuration."""

from __future__ import annotations

import sys

from loguru import logger

_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - {message}"


def configure_logging(level: str = "INFO") -> None:
    """Replace the default loguru sink with a single stderr sink."""

    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_FORMAT, backtrace=False, diagnose=False)
