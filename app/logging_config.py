"""structlog configuration shared by the whole service."""

import logging
import os

import structlog


def configure_logging(level: str = "info") -> None:
    """Configure structlog to emit JSON lines at the given level.

    Args:
        level: Level name such as "debug", "info" or "warning". Unknown names
            fall back to info.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )


configure_logging(os.getenv("LOG_LEVEL", "info"))

logger = structlog.get_logger()
