"""
Logging setup.

Configures the loguru logger: stderr at LOG_LEVEL plus an optional rotating
file sink. Called once from create_application().
"""

from __future__ import annotations

import sys

from loguru import logger

from app.core.config import settings

_configured = False

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "{name}:{line} | {message} | {extra}"
)


def setup_logging() -> None:
    """Configure logger sinks (idempotent)."""
    global _configured
    if _configured:
        return

    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)

    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="1 day",
            retention="7 days",
            level=settings.LOG_LEVEL.upper(),
            format=LOG_FORMAT,
            encoding="utf-8",
        )

    _configured = True
    logger.bind(environment=settings.ENVIRONMENT).info("Logging configured")
