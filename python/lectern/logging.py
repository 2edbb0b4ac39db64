"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- request_id: Correlation ID for the surrounding call
- owner_id: Owner of the source being ingested or read
- source_id: Source being ingested or read (when known)
- timestamp: ISO8601 formatted timestamp

Usage:
    from lectern.logging import get_logger, configure_logging

    # Configure once at startup
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("something_happened", extra_field="value")
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
owner_id_var: ContextVar[str | None] = ContextVar("owner_id", default=None)
source_id_var: ContextVar[str | None] = ContextVar("source_id", default=None)


def add_ingest_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Inject all non-None ContextVar values into the log event dict."""
    request_id = request_id_var.get()
    owner_id = owner_id_var.get()
    source_id = source_id_var.get()

    if request_id:
        event_dict.setdefault("request_id", request_id)
    if owner_id:
        event_dict.setdefault("owner_id", owner_id)
    if source_id:
        event_dict.setdefault("source_id", source_id)

    return event_dict


def configure_logging(json_format: bool = True, level: str | int = logging.INFO) -> None:
    """Configure structlog for the application.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
        level: Root log level name or number.
    """
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_ingest_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("MARKDOWN").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def set_ingest_context(
    request_id: str | None = None,
    owner_id: str | None = None,
    source_id: str | None = None,
) -> None:
    """Set logging context for the current ingestion or read call.

    Only non-None arguments overwrite the current values.
    """
    if request_id is not None:
        request_id_var.set(request_id)
    if owner_id is not None:
        owner_id_var.set(owner_id)
    if source_id is not None:
        source_id_var.set(source_id)


@contextmanager
def ingest_context(
    owner_id: str | None = None,
    source_id: str | None = None,
) -> Iterator[None]:
    """Scope owner/source context to a block, restoring previous values after."""
    tokens = []
    if owner_id is not None:
        tokens.append((owner_id_var, owner_id_var.set(owner_id)))
    if source_id is not None:
        tokens.append((source_id_var, source_id_var.set(source_id)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def clear_ingest_context() -> None:
    """Clear all call-scoped context."""
    request_id_var.set(None)
    owner_id_var.set(None)
    source_id_var.set(None)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_var.get()
