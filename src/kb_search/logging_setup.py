"""
Logging configuration for command-line entry points.
"""

from __future__ import annotations

import sys

from loguru import logger


def configure_logging(level: str = "WARNING") -> None:
    """Route loguru output to stderr at *level*, replacing existing sinks."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )
