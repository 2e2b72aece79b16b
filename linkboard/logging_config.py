"""structlog setup shared by the API server and the maintenance scripts."""

import logging
import sys
from typing import Any

import structlog

# request_completed stands in for uvicorn's own access line
QUIET_LOGGERS = ("uvicorn.access",)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "linkboard",
) -> None:
    """Log to stdout as JSON lines, or coloured console lines when ``json_format`` is off."""
    log_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, user_id: str | None = None, **kwargs: Any) -> None:
    """Attach request keys to every log line until ``clear_request_context``."""
    context = {"request_id": request_id, **kwargs}
    if user_id:
        context["user_id"] = user_id
    structlog.contextvars.bind_contextvars(**context)


def clear_request_context() -> None:
    """Drop per-request keys, keeping the service name bound at startup."""
    structlog.contextvars.unbind_contextvars("request_id", "user_id", "method", "path")
