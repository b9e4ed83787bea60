"""
Logging configuration for the router.

All modules log through children of the "ai_router" logger so one
handler formats everything.
"""

import logging
import os
import sys

ROOT_LOGGER_NAME = "ai_router"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Setup logging with proper format and handlers."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())

    # Remove existing handlers (setup may run again on reload)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(
        '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child logger, e.g. get_logger("store") -> "ai_router.store"."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# Global logger instance
bot_logger = setup_logging()
