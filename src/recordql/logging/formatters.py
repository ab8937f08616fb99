"""
Formatters for recordql log records.

Statement logs carry ``table``, ``operation``, ``dialect``, ``duration_ms``
and ``row_count``. Both formatters know these fields and treat anything
else attached to a record as extra data.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Fields recordql attaches to statement and context logs, in output order.
STATEMENT_FIELDS = (
    "request_id",
    "trace_id",
    "table",
    "operation",
    "dialect",
    "duration_ms",
    "row_count",
)

# Attributes every LogRecord has, plus the ones Formatter.format adds.
_RECORD_ATTRIBUTES = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields attached to ``record`` through ``extra`` that are not statement fields."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES
        and key not in STATEMENT_FIELDS
        and not key.startswith("_")
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Keys:
    - timestamp: ISO 8601 UTC, taken from the record's creation time
    - level, logger, message
    - any statement field present on the record
    - exception: type, message and formatted traceback
    - extra: every other field attached to the record
    """

    def __init__(self, include_extra: bool = True) -> None:
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name))
            for name in STATEMENT_FIELDS
            if getattr(record, name, None) is not None
        )

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {key: _jsonable(value) for key, value in record_extras(record).items()}
            if extra:
                payload["extra"] = extra

        return json.dumps(payload, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """
    Single-line text for terminals.

    Example line:
        12:00:00.123 DEBUG    recordql.binding.executor insert executed table=users operation=insert 0.4ms
    """

    # ANSI foreground colour per level
    LEVEL_COLORS = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }

    # Statement fields shown inline, duration is appended separately
    INLINE_FIELDS = ("request_id", "table", "operation", "row_count")

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        color = self.LEVEL_COLORS.get(record.levelno)
        if self.use_colors and color is not None:
            level = f"\033[{color}m{level}\033[0m"

        parts = [f"{clock}.{int(record.msecs):03d}", level, record.name, record.getMessage()]
        parts.extend(
            f"{name}={getattr(record, name)}"
            for name in self.INLINE_FIELDS
            if getattr(record, name, None) is not None
        )
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"{duration:.1f}ms")

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
