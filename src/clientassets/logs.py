"""structlog configuration.

Hosts call ``setup_logging`` once at startup, before any collector is
created. Library modules only ever call ``structlog.get_logger()``.

Every event carries ``component="clientassets"`` so a host that shares the
stderr stream with its own structlog output can tell the two apart.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from clientassets.config import Settings

COMPONENT = "clientassets"


def _add_component(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("component", COMPONENT)
    return event_dict


def _renderer(fmt: str) -> list[Any]:
    if fmt == "json":
        # Exceptions become structured dicts instead of one escaped string
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(settings: Settings) -> None:
    """Configure structlog for the level and format in ``settings.logging``."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_component,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        *_renderer(settings.logging.format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout belongs to the host's response stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
