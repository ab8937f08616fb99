"""
recordql SQL module.

Dialects, the query compiler, DDL generation and constraint translation.
"""

from recordql.sql.compiler import CompiledQuery, QueryCompiler, conditions_from_filter
from recordql.sql.constraints import is_unique_violation, translate_unique_violation
from recordql.sql.ddl import build_create_table_sql
from recordql.sql.dialects import (
    Dialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    dialect_for,
    get_dialect,
)

__all__ = [
    # Dialects
    "Dialect",
    "SQLiteDialect",
    "PostgresDialect",
    "MySQLDialect",
    "get_dialect",
    "dialect_for",
    # Compiler
    "QueryCompiler",
    "CompiledQuery",
    "conditions_from_filter",
    # DDL
    "build_create_table_sql",
    # Constraints
    "is_unique_violation",
    "translate_unique_violation",
]
