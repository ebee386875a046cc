"""
Structured logging configuration using structlog.

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("integration_created", integration_id="int_123")

Context fields:
    - trace_id: Request correlation ID (bound by RequestContextMiddleware)
    - organization.id: Organization/tenant identifier
    - integration.id / delivery.id: bound while a delivery is being processed
    - duration: Durations in nanoseconds (converted from duration_ms)
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor


def _rename_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename correlation_id to trace_id and make sure it is a string."""
    if "correlation_id" in event_dict:
        event_dict["trace_id"] = str(event_dict.pop("correlation_id"))
    return event_dict


def _convert_duration_to_nanoseconds(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Convert duration_ms to duration (nanoseconds) for log backends."""
    if "duration_ms" in event_dict:
        duration_ms = event_dict.pop("duration_ms")
        if duration_ms is not None:
            event_dict["duration"] = int(duration_ms * 1_000_000)
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Uses stdlib integration so Django and third-party loggers share the
    same output format.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output.
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _rename_correlation_id,
        _convert_duration_to_nanoseconds,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current context.

    Values are included in all subsequent log lines of the current
    request or worker thread. Use dict unpacking for dotted keys:

        bind_contextvars(**{"integration.id": integration.id})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_contextvars(*keys: str) -> None:
    """Remove keys previously bound with bind_contextvars."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_contextvars() -> None:
    """
    Clear all bound context variables.

    Call this at the end of request or task processing to prevent
    context leaking between units of work sharing a thread.
    """
    structlog.contextvars.clear_contextvars()
