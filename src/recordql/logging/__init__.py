"""
recordql structured logging.

JSON and text formatting with context injection for request and statement
fields.
"""

from recordql.logging.config import (
    RecordQLLogger,
    configure_development_logging,
    configure_logging,
    configure_production_logging,
    get_logger,
)
from recordql.logging.context import (
    ContextFilter,
    LogContext,
    clear_log_context,
    get_log_context,
    set_log_context,
    update_log_context,
    with_log_context,
)
from recordql.logging.formatters import JSONFormatter, TextFormatter, record_extras

__all__ = [
    # Configuration
    "configure_logging",
    "configure_production_logging",
    "configure_development_logging",
    "get_logger",
    "RecordQLLogger",
    # Formatters
    "JSONFormatter",
    "TextFormatter",
    "record_extras",
    # Context
    "ContextFilter",
    "LogContext",
    "get_log_context",
    "set_log_context",
    "update_log_context",
    "clear_log_context",
    "with_log_context",
]
