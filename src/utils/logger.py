"""Logging setup using structlog with level-based filtering."""

import logging
import sys

import structlog

from config.settings import settings

# Map string log levels to logging constants
LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_configured = False


def setup_logging(force: bool = False) -> None:
    """Configure structured logging with level-based filtering.

    Reads LOG_LEVEL and LOG_FORMAT from settings:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
    - LOG_FORMAT: console (colored dev output) or json (production) (default: console)

    Args:
        force: Reconfigure even if logging was already set up.
    """
    global _configured
    if _configured and not force:
        return

    log_level = LOG_LEVEL_MAP.get(settings.log_level, logging.INFO)

    # Standard library logging for third-party libraries
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        # Production: one JSON object per line
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Set log level for common noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a logger instance.

    Args:
        name: Optional component name bound as ``logger`` on every entry.

    Returns:
        Configured logger instance.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger


# Auto-initialize logging on import
setup_logging()
