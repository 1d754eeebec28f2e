"""Structured logging configuration shared by all runtime layers."""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "report-runner"


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level metadata to every log event."""

    _ = (logger, method_name)
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def config_configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "report-runner",
) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        level: Log level name.
        json_format: True for JSON, False for console, None to auto-detect from TTY.
        service: Service name attached to every event.

    Returns:
        None: Logging is configured as a side effect.

    Raises:
        ValueError: Raised when level is not a known logging level.
    """

    global _SERVICE_NAME  # pylint: disable=global-statement
    _SERVICE_NAME = service

    numeric_level = logging.getLevelName(level.strip().upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level={level}")

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]
    renderer: Processor
    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)


def config_get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to a module name.

    Args:
        name: Logger name, usually `__name__`.

    Returns:
        structlog.stdlib.BoundLogger: Structured logger.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return structlog.stdlib.get_logger(name)
