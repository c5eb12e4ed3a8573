"""
structlog setup for the analysis engine.

Every record is one line on stderr keyed by event_type, with level, logger
name and a UTC timestamp. stdout stays free for command output such as the
daff-classify JSON report.

LOG_LEVEL picks the threshold (default INFO). LOG_FORMAT=console switches
from JSON lines to the structlog dev renderer.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _utc_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_structlog(stream: Any = None) -> None:
    """(Re)configure structlog; records go to stream, stderr by default."""
    renderer: Any
    if LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _utc_timestamp,
            _event_type,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """Module logger with its name bound under the logger key."""
    return structlog.get_logger(name).bind(logger=name)


def bind_analysis(kind: str, source: str | None = None) -> structlog.BoundLogger:
    log = get_logger("backend_daff").bind(input_kind=kind)
    if source:
        log = log.bind(source=source)
    return log
