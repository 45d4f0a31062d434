"""
Structured logging configuration with structlog.

Production posture renders one JSON object per line; development renders
colored console output. Call configure_structlog() once at startup, then
use structlog.get_logger(__name__) anywhere.
"""

import logging
from typing import Optional

import structlog
from structlog.typing import Processor

DEFAULT_LOG_LEVEL = "INFO"


def _resolve_level(level_name: Optional[str]) -> int:
    """Map a level name such as 'debug' to its logging constant"""
    name = (level_name or DEFAULT_LOG_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


def configure_structlog(environment: str = "development", level: Optional[str] = None) -> None:
    """
    Configure structlog for the application.

    Args:
        environment: 'production' for JSON output, anything else for console.
        level: Minimum level name (default INFO).
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
