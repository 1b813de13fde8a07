"""Structured logging (structlog).

Every line carries the service name plus whatever request context the
handler bound (path, route, site, audience).
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from ..config.settings import get_settings

# Request headers that must never reach a log line verbatim.
_REDACTED_FIELDS = frozenset({"cookie", "authorization"})


def _redact(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    for key in _REDACTED_FIELDS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def configure_logging() -> None:
    settings = get_settings()
    log_level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact,
        structlog.processors.format_exc_info,
    ]
    if settings.log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=settings.service_name)


def bind_request_context(**values: object) -> None:
    """Replace the per-request context; the service name survives."""
    service = structlog.contextvars.get_contextvars().get("service")
    structlog.contextvars.clear_contextvars()
    if service:
        values.setdefault("service", service)
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
