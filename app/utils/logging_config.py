"""
Logging configuration.

Configures the loguru logger: stderr sink at the configured level and an
optional rotating file sink.
"""

import sys

from loguru import logger

from app.config.settings import Settings


def setup_logging(settings: Settings) -> None:
    """Configure logger sinks from settings."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info(
        "Logging configured",
        extra={"level": settings.log_level, "file": settings.log_file},
    )
