"""
Structured logging for scoring and ledger events.

Every module logs through get_logger(__name__) with a snake_case event name
and keyword context:

    logger.info("score_calculated", wallet=short_wallet(addr), method="rule", risk_score=62.5)

Output is one JSON object per line (LOG_FORMAT=json, the default) or colored
console lines (LOG_FORMAT=console). The event name is emitted as event_type.
Request-scoped keys (path, http_method) come from structlog contextvars and
are bound by the API middleware.

Only stdlib logging and structlog are imported here, so any backend_rivora
module can import this package without cycles.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog

SERVICE_NAME = "backend-rivora"


def _level_from_env() -> int:
    return getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    if "event" in event_dict:
        event_dict.setdefault("event_type", event_dict.pop("event"))
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(level: int | str | None = None, fmt: str | None = None, stream: TextIO | None = None) -> None:
    """
    (Re)configure structlog. Called once on import with env defaults; main.py
    and tests may call it again with explicit values.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    level = level if level is not None else _level_from_env()
    fmt = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
        _event_type,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty(), event_key="event_type"))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name).bind(logger=name)


def short_wallet(address: str | None, keep: int = 8) -> str:
    """G... account ids and C... contract ids are cut to their first characters in log lines."""
    address = address or ""
    return address[:keep] + "..." if len(address) > keep else address


def bind_request(path: str, http_method: str) -> None:
    """Attach request keys to every log line until clear_request()."""
    structlog.contextvars.bind_contextvars(path=path, http_method=http_method)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()
