from enum import Enum
from ipaddress import (
    IPv4Address,
    IPv4Interface,
    IPv4Network,
    IPv6Address,
    IPv6Interface,
    IPv6Network,
)
import logging
import sys

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from vps_placement.config import Settings, get_settings

_ADDRESS_TYPES = (
    IPv4Address,
    IPv6Address,
    IPv4Interface,
    IPv6Interface,
    IPv4Network,
    IPv6Network,
)


def render_placement_values(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Log addresses in their text form and enum members by value."""
    for key, value in list(event_dict.items()):
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, _ADDRESS_TYPES):
            event_dict[key] = str(value)
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog for a process embedding the placement engine.

    Service name, format and level come from ``Settings``; without an
    explicit instance the cached ``get_settings()`` is used, so the usual
    ``SERVICE_NAME`` / ``LOG_FORMAT`` / ``LOG_LEVEL`` environment applies.
    """
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
        force=True,
    )

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        render_placement_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=settings.service_name)

    structlog.get_logger(__name__).info(
        "logging_initialized",
        service=settings.service_name,
        log_format=settings.log_format,
        log_level=settings.log_level,
    )
