"""Structured logging setup."""

import logging
import sys
from typing import Optional

import structlog

from ..config import LoggingConfig, settings


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structlog and the standard library root logger.

    ``log_format=json`` renders one JSON object per line; anything else uses
    the console renderer.
    """
    config = config or settings.logging
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(format="%(message)s", level=level, handlers=handlers, force=True)

    if config.log_format.lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # uvicorn access logs follow the same switch
    if not config.enable_access_logs:
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None):
    """Get a structlog logger."""
    return structlog.get_logger(name)
