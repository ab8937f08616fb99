"""
Log context carried across calls.

Hosts set request-level fields (``request_id``, ``trace_id``) and may scope
``table``, ``operation`` or ``dialect`` around a group of binding calls.
ContextFilter copies the active fields onto every record a handler sees.
"""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from types import MappingProxyType
from typing import Any

_EMPTY: Mapping[str, Any] = MappingProxyType({})

_current: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "recordql_log_context",
    default=_EMPTY,
)


@dataclass(frozen=True)
class LogContext:
    """Known context fields plus free-form ``extra``."""

    request_id: str | None = None
    trace_id: str | None = None
    table: str | None = None
    operation: str | None = None
    dialect: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Fields that are set, with ``extra`` flattened in."""
        values = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        return {**values, **self.extra}


def _fields(context: LogContext | Mapping[str, Any] | None) -> dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, LogContext):
        return context.to_dict()
    return dict(context)


def get_log_context() -> dict[str, Any]:
    """A copy of the active context fields."""
    return dict(_current.get())


def set_log_context(context: LogContext | Mapping[str, Any]) -> None:
    """Replace the active context."""
    _current.set(MappingProxyType(_fields(context)))


def update_log_context(**fields: Any) -> None:
    """Add fields to the active context."""
    _current.set(MappingProxyType({**_current.get(), **fields}))


def clear_log_context() -> None:
    _current.set(_EMPTY)


@contextmanager
def with_log_context(
    context: LogContext | Mapping[str, Any] | None = None,
    **fields: Any,
) -> Iterator[dict[str, Any]]:
    """
    Layer fields over the active context for the duration of a block.

    Keyword fields set to None are ignored. The previous context is
    restored on exit, even when the block raises.

    Example:
        with with_log_context(request_id="abc", table="users"):
            users.insert({...})
    """
    layered = {**_current.get(), **_fields(context)}
    layered.update((key, value) for key, value in fields.items() if value is not None)
    token = _current.set(MappingProxyType(layered))
    try:
        yield dict(layered)
    finally:
        _current.reset(token)


class ContextFilter(logging.Filter):
    """Copies active context fields onto records that do not carry them yet."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _current.get().items():
            record.__dict__.setdefault(key, value)
        return True
