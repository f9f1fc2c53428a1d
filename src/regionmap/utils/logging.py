"""structlog setup for regionmap.

Every service call binds a request id, the operation name and, where one is
involved, the owner id. `_add_correlation_ids` copies whichever are bound
onto each event, so a single call can be followed through the coordinator,
both stores and the geocoder.

`configure_logging` is called by `build_service` with the process settings
(LOG_LEVEL, LOG_FORMAT). Until then structlog's defaults apply.
"""

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, cast

import structlog
from structlog.types import Processor

LOG_FORMATS = ("console", "json")

_CORRELATION_VARS: dict[str, ContextVar[str | None]] = {
    "request_id": ContextVar("request_id", default=None),
    "operation": ContextVar("operation", default=None),
    "owner_id": ContextVar("owner_id", default=None),
}


def set_correlation_context(
    request_id: str | None = None,
    operation: str | None = None,
    owner_id: str | None = None,
) -> None:
    """Bind correlation IDs for the rest of the current async context.

    Args:
        request_id: Unique identifier for the inbound service call
        operation: Service operation name (e.g., "create_region")
        owner_id: User whose owner-list the operation touches
    """
    values = {"request_id": request_id, "operation": operation, "owner_id": owner_id}
    for name, value in values.items():
        if value is not None:
            _CORRELATION_VARS[name].set(value)


def clear_correlation_context() -> None:
    """Unbind every correlation ID."""
    for var in _CORRELATION_VARS.values():
        var.set(None)


@contextmanager
def correlation_scope(
    request_id: str | None = None,
    operation: str | None = None,
    owner_id: str | None = None,
) -> Iterator[None]:
    """Bind correlation IDs for the duration of a block, then restore them."""
    values = {"request_id": request_id, "operation": operation, "owner_id": owner_id}
    tokens = [
        (_CORRELATION_VARS[name], _CORRELATION_VARS[name].set(value))
        for name, value in values.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def _add_correlation_ids(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor copying bound correlation IDs onto the event."""
    _ = logger, method_name  # Required by structlog processor signature
    for name, var in _CORRELATION_VARS.items():
        value = var.get()
        if value is not None:
            event_dict[name] = value
    return event_dict


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through one pipeline.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: "console" for development, "json" for log shipping.

    Raises:
        ValueError: If the level or format is not recognised.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {log_format!r} (expected one of {LOG_FORMATS})")

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_correlation_ids,
        *_renderer(log_format),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(numeric_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for ``name``."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
