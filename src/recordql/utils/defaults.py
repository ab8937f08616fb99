"""
Default profiles for recordql configuration.
"""

import os
from dataclasses import dataclass, replace
from typing import Literal

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BindingDefaults:
    """
    Configuration profile for table bindings.

    Profiles control pagination, RETURNING opt-in and diagnostics.
    """

    mode: Literal["prod", "dev"]

    # Row cap applied by all() when the caller gives no limit
    default_row_limit: int = 20

    # RETURNING is used only when this is set and the server version allows it
    enable_returning: bool = False

    # Diagnostics
    log_sql: bool = False

    # Run CREATE TABLE IF NOT EXISTS when a binding is built
    create_tables: bool = False

    def __post_init__(self) -> None:
        if self.default_row_limit < 1:
            raise ValueError("default_row_limit must be at least 1")

    def with_overrides(self, **changes: object) -> "BindingDefaults":
        """A copy with some fields replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]

    def from_env(self, prefix: str = "RECORDQL_") -> "BindingDefaults":
        """
        A copy with fields overridden from environment variables.

        Reads ``<prefix>DEFAULT_ROW_LIMIT``, ``<prefix>ENABLE_RETURNING``,
        ``<prefix>LOG_SQL`` and ``<prefix>CREATE_TABLES``.
        """
        changes: dict[str, object] = {}
        limit = os.environ.get(f"{prefix}DEFAULT_ROW_LIMIT")
        if limit:
            changes["default_row_limit"] = int(limit)
        for name in ("enable_returning", "log_sql", "create_tables"):
            raw = os.environ.get(f"{prefix}{name.upper()}")
            if raw is not None:
                changes[name] = raw.strip().lower() in _TRUTHY
        return replace(self, **changes) if changes else self  # type: ignore[arg-type]


# Built-in profiles

DEFAULT_PROD = BindingDefaults(
    mode="prod",
    default_row_limit=20,
    enable_returning=False,
    log_sql=False,
    create_tables=False,
)

DEFAULT_DEV = BindingDefaults(
    mode="dev",
    default_row_limit=20,
    enable_returning=False,
    log_sql=True,
    create_tables=True,
)
