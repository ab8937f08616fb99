"""
SQL dialects.

Everything that differs between SQLite, Postgres and MySQL lives here:
placeholders, identifier quoting, identity columns, column types, RETURNING
support and the handful of statement forms with no portable spelling.
The compiler only ever asks a Dialect.
"""

import json
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from recordql.core.errors import InvalidQueryError
from recordql.core.identifiers import quote_identifier
from recordql.core.types import FieldType, IdStrategy, SchemaField

# DB-API paramstyles we can render positionally.
PARAMSTYLES = frozenset({"qmark", "numeric", "numeric_dollar", "format", "pyformat"})


class Dialect:
    """
    Base dialect.

    Args:
        paramstyle: DB-API paramstyle of the driver in use. Defaults to the
            dialect's canonical style.
        server_version: Server version tuple, used to gate RETURNING
        enable_returning: Explicit opt-in for RETURNING. Both this flag and
            the version check must agree before RETURNING is emitted.
    """

    name = "generic"
    quote_char = '"'
    default_paramstyle = "qmark"
    returning_min_version: tuple[int, ...] | None = None
    # True when any failed statement aborts the enclosing transaction
    error_aborts_transaction = False
    length_function = "length"

    def __init__(
        self,
        paramstyle: str | None = None,
        server_version: tuple[int, ...] | None = None,
        enable_returning: bool = False,
    ) -> None:
        self.paramstyle = paramstyle or self.default_paramstyle
        if self.paramstyle not in PARAMSTYLES:
            raise InvalidQueryError(
                f"Unsupported paramstyle {self.paramstyle!r} for {self.name}",
                retry_hints=[f"Supported paramstyles: {', '.join(sorted(PARAMSTYLES))}"],
            )
        self.server_version = tuple(server_version) if server_version else None
        self.enable_returning = enable_returning

    def __repr__(self) -> str:
        return f"{type(self).__name__}(paramstyle={self.paramstyle!r})"

    # =========================================================================
    # TEXT
    # =========================================================================

    def placeholder(self, index: int) -> str:
        """Placeholder for the ``index``-th (1-based) parameter."""
        match self.paramstyle:
            case "qmark":
                return "?"
            case "numeric_dollar":
                return f"${index}"
            case "numeric":
                return f":{index}"
            case _:
                return "%s"

    def quote(self, name: str) -> str:
        """Validate then quote an identifier."""
        return quote_identifier(name, self.quote_char)

    def limit_clause(self, limit: str | None, offset: str | None) -> str:
        """LIMIT/OFFSET tail from already rendered placeholders."""
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def empty_insert(self, table: str) -> str:
        """INSERT that relies on column defaults only."""
        return f"INSERT INTO {table} DEFAULT VALUES"

    def upsert_clause(self, conflict_columns: list[str], update_columns: list[str]) -> str:
        """Conflict handling tail for an INSERT (columns already quoted)."""
        target = ", ".join(conflict_columns)
        if not update_columns:
            return f"ON CONFLICT ({target}) DO NOTHING"
        sets = ", ".join(f"{c} = excluded.{c}" for c in update_columns)
        return f"ON CONFLICT ({target}) DO UPDATE SET {sets}"

    # =========================================================================
    # CAPABILITIES
    # =========================================================================

    def supports_returning(self) -> bool:
        """True only when RETURNING is enabled and the server is new enough."""
        if not self.enable_returning or self.returning_min_version is None:
            return False
        if self.server_version is None:
            return False
        return self.server_version >= self.returning_min_version

    def last_insert_id_sql(self) -> str:
        raise NotImplementedError

    # =========================================================================
    # DDL
    # =========================================================================

    def auto_increment_clause(self, kind: IdStrategy) -> str:
        """Type and key clause for an identity column of the given kind."""
        raise NotImplementedError

    def column_type(self, field: SchemaField) -> str:
        raise NotImplementedError

    # =========================================================================
    # PARAMETERS
    # =========================================================================

    def adapt_param(self, value: Any) -> Any:
        """Convert a Python value into something the driver can bind."""
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        if isinstance(value, uuid.UUID):
            return str(value)
        return value


class SQLiteDialect(Dialect):
    """SQLite 3. RETURNING needs 3.35 or later."""

    name = "sqlite"
    default_paramstyle = "qmark"
    returning_min_version = (3, 35, 0)

    def limit_clause(self, limit: str | None, offset: str | None) -> str:
        if limit is None and offset is not None:
            return f"LIMIT -1 OFFSET {offset}"
        return super().limit_clause(limit, offset)

    def last_insert_id_sql(self) -> str:
        return "SELECT last_insert_rowid()"

    def auto_increment_clause(self, kind: IdStrategy) -> str:
        if kind in (IdStrategy.INT, IdStrategy.BIGINT):
            return "INTEGER PRIMARY KEY"
        return "TEXT PRIMARY KEY"

    def column_type(self, field: SchemaField) -> str:
        match field.type:
            case FieldType.INT | FieldType.BIGINT | FieldType.MONEY | FieldType.BOOL:
                return "INTEGER"
            case FieldType.FLOAT:
                return "REAL"
            case _:
                return "TEXT"

    def adapt_param(self, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        return super().adapt_param(value)


class PostgresDialect(Dialect):
    """PostgreSQL. Canonical placeholders are ``$1, $2, ...``."""

    name = "postgresql"
    default_paramstyle = "numeric_dollar"
    error_aborts_transaction = True
    returning_min_version = (8, 2)

    def last_insert_id_sql(self) -> str:
        return "SELECT lastval()"

    def auto_increment_clause(self, kind: IdStrategy) -> str:
        match kind:
            case IdStrategy.INT:
                return "SERIAL PRIMARY KEY"
            case IdStrategy.BIGINT:
                return "BIGSERIAL PRIMARY KEY"
            case IdStrategy.UUID:
                return "UUID PRIMARY KEY DEFAULT gen_random_uuid()"
            case _:
                return "TEXT PRIMARY KEY"

    def column_type(self, field: SchemaField) -> str:
        match field.type:
            case FieldType.INT:
                return "INTEGER"
            case FieldType.BIGINT | FieldType.MONEY:
                return "BIGINT"
            case FieldType.FLOAT:
                return "DOUBLE PRECISION"
            case FieldType.BOOL:
                return "BOOLEAN"
            case FieldType.DATETIME:
                return "TIMESTAMP"
            case FieldType.DATE:
                return "DATE"
            case FieldType.TIME:
                return "TIME"
            case FieldType.JSON:
                return "JSONB"
            case FieldType.UUID:
                return "UUID"
            case _:
                return "TEXT"


class MySQLDialect(Dialect):
    """MySQL. No RETURNING; identifiers are quoted with backticks."""

    name = "mysql"
    quote_char = "`"
    default_paramstyle = "qmark"
    length_function = "CHAR_LENGTH"

    def limit_clause(self, limit: str | None, offset: str | None) -> str:
        if limit is None and offset is not None:
            # MySQL has no OFFSET without LIMIT
            return f"LIMIT 18446744073709551615 OFFSET {offset}"
        return super().limit_clause(limit, offset)

    def empty_insert(self, table: str) -> str:
        return f"INSERT INTO {table} () VALUES ()"

    def upsert_clause(self, conflict_columns: list[str], update_columns: list[str]) -> str:
        # MySQL resolves the conflict target from the table's unique keys
        columns = update_columns or conflict_columns[:1]
        sets = ", ".join(f"{c} = VALUES({c})" for c in columns)
        return f"ON DUPLICATE KEY UPDATE {sets}"

    def last_insert_id_sql(self) -> str:
        return "SELECT LAST_INSERT_ID()"

    def auto_increment_clause(self, kind: IdStrategy) -> str:
        match kind:
            case IdStrategy.INT:
                return "INT AUTO_INCREMENT PRIMARY KEY"
            case IdStrategy.BIGINT:
                return "BIGINT AUTO_INCREMENT PRIMARY KEY"
            case IdStrategy.UUID:
                return "CHAR(36) PRIMARY KEY"
            case _:
                return "CHAR(26) PRIMARY KEY"

    def column_type(self, field: SchemaField) -> str:
        match field.type:
            case FieldType.INT:
                return "INT"
            case FieldType.BIGINT | FieldType.MONEY:
                return "BIGINT"
            case FieldType.FLOAT:
                return "DOUBLE"
            case FieldType.BOOL:
                return "BOOLEAN"
            case FieldType.DATETIME:
                return "DATETIME"
            case FieldType.DATE:
                return "DATE"
            case FieldType.TIME:
                return "TIME"
            case FieldType.JSON:
                return "JSON"
            case FieldType.UUID:
                return "CHAR(36)"
            case FieldType.ULID:
                return "CHAR(26)"
            case FieldType.TEXT:
                return "TEXT"
            case _:
                return f"VARCHAR({field.max_length or 255})"


DIALECTS: dict[str, type[Dialect]] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
}


def get_dialect(name: str, **kwargs: Any) -> Dialect:
    """
    Look up a dialect by name.

    Raises:
        InvalidQueryError: If the dialect is not supported
    """
    dialect_class = DIALECTS.get(name.lower())
    if dialect_class is None:
        raise InvalidQueryError(
            f"Unsupported dialect {name!r}",
            retry_hints=["Supported dialects: sqlite, postgresql, mysql"],
        )
    return dialect_class(**kwargs)


def dialect_for(connection: Any, enable_returning: bool = False) -> Dialect:
    """
    Pick the dialect matching a live SQLAlchemy connection.

    Placeholders follow the driver's paramstyle and RETURNING is gated on
    the reported server version.
    """
    sa_dialect = connection.dialect
    return get_dialect(
        sa_dialect.name,
        paramstyle=sa_dialect.paramstyle,
        server_version=getattr(sa_dialect, "server_version_info", None),
        enable_returning=enable_returning,
    )
