"""
CREATE TABLE generation from a Schema.

Only constraints the database can enforce on its own are emitted:
PRIMARY KEY, NOT NULL, UNIQUE, DEFAULT and CHECK for enum membership,
numeric range and string length. Patterns and format checks stay in the
application layer.
"""

from typing import Any

from recordql.core.types import (
    FieldType,
    NUMERIC_TYPES,
    STRING_TYPES,
    IdStrategy,
    SchemaField,
)
from recordql.schema.casting import cast_value, encode_value
from recordql.schema.schema import Schema
from recordql.sql.dialects import Dialect, SQLiteDialect


def sql_literal(value: Any, dialect: Dialect) -> str | None:
    """
    Render a constant for DDL.

    Returns None for values with no portable literal form.
    """
    if isinstance(value, bool):
        if isinstance(dialect, SQLiteDialect):
            return "1" if value else "0"
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"
    return None


def _checks(field: SchemaField, column: str, dialect: Dialect) -> list[str]:
    checks = []
    if field.type == FieldType.ENUM:
        values = ", ".join(sql_literal(v, dialect) for v in field.enum_values)  # type: ignore[misc]
        checks.append(f"{column} IN ({values})")
    if field.type in NUMERIC_TYPES:
        bounds = []
        if field.min_value is not None:
            bounds.append(f"{column} >= {encode_value(field, field.min_value)!r}")
        if field.max_value is not None:
            bounds.append(f"{column} <= {encode_value(field, field.max_value)!r}")
        if bounds:
            checks.append(" AND ".join(bounds))
    if field.type in STRING_TYPES and field.type != FieldType.ENUM:
        length = f"{dialect.length_function}({column})"
        bounds = []
        if field.min_length is not None:
            bounds.append(f"{length} >= {field.min_length}")
        if field.max_length is not None:
            bounds.append(f"{length} <= {field.max_length}")
        if bounds:
            checks.append(" AND ".join(bounds))
    return checks


def column_definition(
    field: SchemaField,
    dialect: Dialect,
    identity: bool = False,
) -> str:
    """Render one column of a CREATE TABLE statement."""
    column = dialect.quote(field.name)

    if identity:
        kind = field.id_strategy
        if field.auto or kind in (IdStrategy.UUID, IdStrategy.ULID):
            return f"{column} {dialect.auto_increment_clause(kind)}"  # type: ignore[arg-type]
        return f"{column} {dialect.column_type(field)} PRIMARY KEY"

    parts = [column, dialect.column_type(field)]
    if field.required:
        parts.append("NOT NULL")
    if field.unique:
        parts.append("UNIQUE")
    if field.default is not None and not callable(field.default):
        default, ok = cast_value(field, field.default)
        literal = sql_literal(encode_value(field, default), dialect) if ok else None
        if literal is not None:
            parts.append(f"DEFAULT {literal}")
    for check in _checks(field, column, dialect):
        parts.append(f"CHECK ({check})")
    return " ".join(parts)


def build_create_table_sql(
    schema: Schema,
    table: str,
    dialect: Dialect,
    soft_delete_column: str | None = None,
) -> str:
    """
    Build ``CREATE TABLE IF NOT EXISTS`` for ``schema`` stored in ``table``.

    Args:
        schema: The schema to materialize
        table: Physical table name
        dialect: Target dialect
        soft_delete_column: Extra nullable timestamp column added when the
            schema does not declare it
    """
    identity = schema.identity
    columns = [
        column_definition(field, dialect, identity=field is identity)
        for field in schema.fields()
    ]
    if soft_delete_column and soft_delete_column not in schema:
        marker = SchemaField(name=soft_delete_column, type=FieldType.DATETIME)
        columns.append(f"{dialect.quote(soft_delete_column)} {dialect.column_type(marker)}")

    body = ",\n  ".join(columns)
    return f"CREATE TABLE IF NOT EXISTS {dialect.quote(table)} (\n  {body}\n)"
