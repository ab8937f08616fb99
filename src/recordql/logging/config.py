"""
Logger access and handler setup for recordql.

Library modules only call ``get_logger``. Handlers are installed by the
application through ``configure_logging`` or one of its presets.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable, MutableMapping
from typing import Any, TextIO

from recordql.logging.context import ContextFilter
from recordql.logging.formatters import JSONFormatter, TextFormatter

ROOT_LOGGER = "recordql"

# Keyword arguments the stdlib logging call understands itself
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_FORMATTERS: dict[str, Callable[[bool], logging.Formatter]] = {
    "json": lambda use_colors: JSONFormatter(include_extra=True),
    "text": lambda use_colors: TextFormatter(use_colors=use_colors),
}


class RecordQLLogger(logging.LoggerAdapter):
    """
    Logger adapter that turns keyword arguments into record fields.

    Example:
        logger = get_logger(__name__)
        logger.debug("select executed", table="users", duration_ms=1.2, row_count=3)
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KWARGS}
        kwargs["extra"] = {**(kwargs.get("extra") or {}), **fields}
        return msg, kwargs


def get_logger(name: str) -> RecordQLLogger:
    """
    Get a recordql logger.

    Args:
        name: Logger name, normally the calling module's ``__name__``
    """
    return RecordQLLogger(logging.getLogger(name))


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def configure_logging(
    level: int | str = logging.INFO,
    format: str = "json",
    output: TextIO | None = None,
    include_context: bool = True,
    use_colors: bool = True,
) -> logging.Handler:
    """
    Send recordql logs to ``output``.

    Replaces whatever handlers the ``recordql`` logger had and stops
    propagation to the root logger.

    Args:
        level: Level name or number
        format: ``json`` for log shipping, ``text`` for terminals
        output: Stream to write to (defaults to stderr)
        include_context: Attach the active log context to every record
        use_colors: ANSI colours in the text format

    Returns:
        The installed handler

    Example:
        configure_logging(level="DEBUG", format="text")
    """
    make_formatter = _FORMATTERS.get(format.lower())
    if make_formatter is None:
        raise ValueError(f"Unknown log format {format!r}; expected 'json' or 'text'")
    numeric_level = _resolve_level(level)

    handler = logging.StreamHandler(output if output is not None else sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(make_formatter(use_colors))
    if include_context:
        handler.addFilter(ContextFilter())

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(numeric_level)
    logger.handlers[:] = [handler]
    logger.propagate = False
    return handler


def configure_production_logging(level: int | str = logging.INFO) -> logging.Handler:
    """JSON lines on stderr."""
    return configure_logging(level, "json")


def configure_development_logging(level: int | str = logging.DEBUG) -> logging.Handler:
    """Coloured text on stderr."""
    return configure_logging(level, "text", use_colors=True)
