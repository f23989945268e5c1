"""Structured logging utilities for blockpaths.

Every entry carries ``service``, ``logger``, ``level`` and an ISO-8601 UTC
``timestamp``, rendered as one JSON object per line on stdout (or a coloured
console line when JSON_LOGS=false). Modules obtain their logger through
``get_logger(__name__)``; main.py reconfigures once from ``settings_from_env()``.
"""

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "blockpaths"


@dataclass(frozen=True)
class LogSettings:
    level: str = "INFO"
    json_output: bool = True


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> LogSettings:
    """Read DEBUG, LOG_LEVEL and JSON_LOGS.

    LOG_LEVEL wins over DEBUG; DEBUG=true only changes the default to DEBUG.
    """
    env = os.environ if environ is None else environ
    debug = env.get("DEBUG", "false").lower() == "true"
    level = env.get("LOG_LEVEL", "DEBUG" if debug else "INFO").upper()
    json_output = env.get("JSON_LOGS", "true").lower() == "true"
    return LogSettings(level=level, json_output=json_output)


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def build_processors(json_output: bool = True) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    return processors


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the whole process.

    Raises:
        ValueError: ``log_level`` is not a standard logging level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = SERVICE_NAME) -> Any:
    """Return a lazily bound logger tagged with ``logger=<name>``."""
    return structlog.get_logger().bind(logger=name)


# Sensible defaults until main.py reconfigures from the environment
configure_logging()
