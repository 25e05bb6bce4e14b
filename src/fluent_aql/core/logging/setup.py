"""Centralized logging setup with optional Logfire integration.

Logfire itself is configured via environment variables (LOGFIRE_TOKEN,
LOGFIRE_SERVICE_NAME, ...); this module only decides whether structlog
events are forwarded to it.
"""

import logging
import sys

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger
from structlog.typing import FilteringBoundLogger

from fluent_aql.core.config import Settings, settings


def add_error_type(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add the exception class name of an ``error`` field to the event."""
    if "error" in event_dict:
        event_dict["error_type"] = type(event_dict["error"]).__name__

    return event_dict


def build_processors(config: Settings | None = None) -> list[Processor]:
    """Return the structlog processor chain for the given settings.

    The final renderer is always the last processor.
    """
    config = config or settings

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.FILENAME,
                CallsiteParameter.LINENO,
                CallsiteParameter.FUNC_NAME,
            ]
        ),
        add_error_type,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    # The Logfire processor MUST come before the final renderer
    if config.logfire_enabled:
        processors.append(logfire.StructlogProcessor())

    processors.append(structlog.dev.ConsoleRenderer(colors=config.debug))
    return processors


def setup_logging(config: Settings | None = None) -> None:
    """Set up structlog and the stdlib root logger.

    Library code never calls this; applications embedding fluent_aql do.
    """
    config = config or settings
    processors = build_processors(config)
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        # Use PrintLogger to avoid double logging with standard library
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Route stdlib records through the same pre-chain, minus the renderer
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=config.debug),
        foreign_pre_chain=processors[:-1],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Get a structured logger instance.

    Args:
        name: The name of the logger (usually __name__)

    Returns:
        A configured structlog logger instance
    """
    return structlog.get_logger(name)
