"""Loguru sink configuration shared by the API and the CLI."""

from __future__ import annotations

import sys

from loguru import logger

from config import Settings

LOG_FORMAT = "<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name} | {message}"


def configure_logging(settings: Settings, level: str | None = None) -> None:
    """
    Replace loguru's default handler with the configured sinks.

    Args:
        settings: Application settings (log_level, log_file)
        level: Override for the stderr level (e.g. "ERROR" for quiet CLI output)
    """
    logger.remove()
    logger.add(sys.stderr, level=level or settings.log_level, format=LOG_FORMAT)

    if settings.log_file:
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
