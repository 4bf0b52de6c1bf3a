# src/logging/logger.py — v1
"""Log setup for agentengine.

``ContextFilter`` stamps every record with the ids of the execution that
emitted it (agent, execution, session, attempt). Both formatters render
those record attributes, so ids passed through ``extra=`` take precedence
over the ambient execution scope.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from agentengine.logging.context import CONTEXT_FIELDS, get_context


class ContextFilter(logging.Filter):
    """Copy the current execution ids onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = get_context()
        for name in CONTEXT_FIELDS:
            if getattr(record, name, None) is None:
                setattr(record, name, getattr(ctx, name))
        return True


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Execution ids carried by ``record``, unset ones omitted."""
    return {
        name: value
        for name in CONTEXT_FIELDS
        if (value := getattr(record, name, None)) is not None
    }


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line; execution ids are flattened into it."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _record_time(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """``<time> [LEVEL] logger [agent_id] (attempt n) — message``."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = record_context(record)
        line = (
            f"{_record_time(record):%Y-%m-%d %H:%M:%S} "
            f"[{record.levelname:8s}] {record.name}"
        )
        if "agent_id" in ctx:
            line += f" [{ctx['agent_id']}]"
        if "attempt" in ctx:
            line += f" (attempt {ctx['attempt'] + 1})"
        line += f" — {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``agentengine`` namespace."""
    return logging.getLogger(f"agentengine.{name}")


def _attach(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> None:
    """Route ``agentengine`` records to stderr and optionally a rotating file.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional log file path.
        rotation: File size that triggers rotation, e.g. "10MB".
        retention: Rotated files kept.
    """
    root_logger = logging.getLogger("agentengine")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()

    formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    root_logger.addHandler(_attach(logging.StreamHandler(sys.stderr), formatter))

    if log_file:
        from agentengine.logging.handlers import create_rotating_handler

        root_logger.addHandler(
            _attach(
                create_rotating_handler(log_file, rotation=rotation, retention=retention),
                formatter,
            )
        )
