"""
Translation of database constraint failures into field errors.

A duplicate value can only be detected by the database. Its error text is
matched per dialect and rehomed into the same FieldError shape in-memory
validation produces, with code UNIQUE.
"""

import re
from collections.abc import Mapping
from typing import Any

from recordql.core.types import ErrorCode, FieldError
from recordql.schema.schema import Schema

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?P<columns>[\w.]+(?:,\s*[\w.]+)*)")
_POSTGRES_UNIQUE = re.compile(r"duplicate key value violates unique constraint")
_POSTGRES_KEY = re.compile(r"Key \((?P<columns>[^)]+)\)=\(")
_POSTGRES_CONSTRAINT = re.compile(r'unique constraint "(?P<name>[^"]+)"')
_MYSQL_UNIQUE = re.compile(r"Duplicate entry '.*' for key '(?P<key>[^']+)'", re.DOTALL)


def _columns_from_message(dialect: str, message: str) -> list[str] | None:
    """
    Columns named by a unique violation, or None when the message is not
    a unique violation at all.
    """
    match dialect:
        case "sqlite":
            m = _SQLITE_UNIQUE.search(message)
            if not m:
                return None
            return [c.strip().split(".")[-1] for c in m.group("columns").split(",")]
        case "postgresql":
            if not _POSTGRES_UNIQUE.search(message):
                return None
            key = _POSTGRES_KEY.search(message)
            if key:
                return [c.strip().strip('"') for c in key.group("columns").split(",")]
            constraint = _POSTGRES_CONSTRAINT.search(message)
            return [constraint.group("name")] if constraint else []
        case "mysql":
            m = _MYSQL_UNIQUE.search(message)
            if not m:
                return None
            return [m.group("key").split(".")[-1]]
        case _:
            return None


def _resolve_field(schema: Schema, table: str, names: list[str]) -> str | None:
    for name in names:
        if name in schema:
            return name
    # Constraint or index names such as users_email_key / uq_users_email
    unique_fields = [f.name for f in schema.fields() if f.unique or f is schema.identity]
    for name in names:
        stripped = name.removeprefix(f"{table}_").removesuffix("_key")
        if stripped in schema:
            return stripped
        for field in unique_fields:
            if name.endswith(f"_{field}") or name.endswith(f"_{field}_key"):
                return field
    declared_unique = [f.name for f in schema.fields() if f.unique]
    if len(declared_unique) == 1:
        return declared_unique[0]
    return names[0] if names else None


def is_unique_violation(dialect: str, message: str) -> bool:
    return _columns_from_message(dialect, message) is not None


def translate_unique_violation(
    dialect: str,
    message: str,
    schema: Schema,
    table: str,
    values: Mapping[str, Any] | None = None,
) -> FieldError | None:
    """
    Turn a driver error message into a UNIQUE FieldError.

    Args:
        dialect: Dialect name (sqlite, postgresql, mysql)
        message: Driver error text
        schema: Schema of the table written to
        table: Physical table name
        values: Values that were written, used to report the offending value

    Returns:
        The FieldError, or None if the message is not a unique violation
    """
    names = _columns_from_message(dialect, message)
    if names is None:
        return None
    field = _resolve_field(schema, table, names) or "_unknown"
    return FieldError(
        field=field,
        code=ErrorCode.UNIQUE,
        message=f"{schema.title(field)} already exists",
        value=(values or {}).get(field),
    )
