"""
promisekit logging - structured logging with structlog.

Components never report failures themselves (the caller receives them
through rejected futures); they emit DEBUG events with dotted names so that
drop, discard, eviction and timeout decisions can be traced.

Architecture:
    ::

        configure_logging(level="DEBUG", json_format=False)
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. add_log_level / add_logger_name
          3. add_service_metadata
          4. JSONRenderer (or ConsoleRenderer for dev)

        logger = get_logger(__name__)
        logger.debug("last_action.superseded", pending=2)

Examples:
    >>> from promisekit.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("cache.evicted", key="user:1")

Tags:
    logging, structlog, observability, promisekit
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from promisekit.core.settings import PromiseKitSettings, get_settings

# Store service name for metadata
_SERVICE_NAME = "promisekit"


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    settings: PromiseKitSettings | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to settings
        json_format: True for JSON, False for console; defaults to settings
        settings: Settings to read defaults from (default: ``get_settings()``)
    """
    global _SERVICE_NAME

    settings = settings or get_settings()
    _SERVICE_NAME = settings.service_name
    level = (level or settings.log_level).upper()
    if json_format is None:
        json_format = settings.log_format == "json"

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
    )


# Used until structlog is configured: events go to the stdlib logger of the
# same name, so they stay silent unless the host enables that level.
_UNCONFIGURED_PROCESSORS: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.processors.KeyValueRenderer(key_order=["event"]),
]


class _RoutedLogger:
    """Picks the backend on every call, so loggers created at import time
    follow a later ``configure_logging``."""

    __slots__ = ("_name",)

    def __init__(self, name: str | None) -> None:
        self._name = name

    def _resolve(self) -> Any:
        if structlog.is_configured():
            return structlog.get_logger(self._name)
        return structlog.wrap_logger(
            logging.getLogger(self._name),
            processors=_UNCONFIGURED_PROCESSORS,
            wrapper_class=structlog.stdlib.BoundLogger,
        )

    def __getattr__(self, method: str) -> Any:
        return getattr(self._resolve(), method)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Before structlog is configured, events are handed to stdlib logging
    instead of structlog's default stdout printer.

    Args:
        name: Logger name (usually __name__)
    """
    return _RoutedLogger(name)


__all__ = [
    "configure_logging",
    "get_logger",
]
