"""
Logging Configuration

Structured logging setup using structlog for consistent, parseable logs.

Collection runs and per-record pipeline work bind their identifiers through
contextvars, so nested log entries carry source_id, collector_type and
parcel_id without passing them around.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from config.settings import settings


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add application context to all log entries.
    """
    event_dict["environment"] = settings.environment
    event_dict["app"] = "parcelflow"
    return event_dict


def setup_logging(level: Optional[str] = None) -> structlog.BoundLogger:
    """
    Configure structured logging for the application.

    Args:
        level: Log level name overriding settings.log_level

    Returns:
        Configured structlog logger instance
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, (level or settings.log_level).upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.ExceptionRenderer())
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()


def collection_context(source_id: str, collector_type: str):
    """
    Bind source identifiers to every log entry emitted inside a collection run.

    Usage:
        with collection_context(source.id, source.collector_type):
            ...
    """
    return structlog.contextvars.bound_contextvars(
        source_id=source_id,
        collector_type=collector_type,
    )


def record_context(parcel_id: str, source_id: str):
    """Bind the record being transformed to log entries from pipeline steps."""
    bindings = {"record_source_id": source_id}
    if parcel_id:
        bindings["parcel_id"] = parcel_id
    return structlog.contextvars.bound_contextvars(**bindings)
