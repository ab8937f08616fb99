"""
Statement execution on a borrowed connection.

Runs CompiledQuery objects through ``Connection.exec_driver_sql``, maps
rows to plain dicts and converts driver exceptions into recordql errors.
SQL text never ends up in an error message; it is logged only when
``log_sql`` is enabled.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import Connection, CursorResult
from sqlalchemy.exc import DBAPIError, IntegrityError

from recordql.core.errors import ConstraintViolationError, DatabaseError, QueryCancelledError
from recordql.logging import get_logger
from recordql.sql.compiler import CompiledQuery
from recordql.sql.dialects import Dialect

logger = get_logger(__name__)


def driver_message(exc: DBAPIError) -> str:
    """The driver's own error text, without the statement SQLAlchemy appends."""
    orig = exc.orig if exc.orig is not None else exc
    return str(orig).strip()


class StatementExecutor:
    """
    Executes compiled statements.

    Args:
        connection: Borrowed SQLAlchemy connection
        dialect: Dialect the statements were compiled for
        log_sql: Include SQL text in debug logs
        cancelled: Host cancellation signal, checked before every statement
        execution_options: Passed through to the driver on every statement
    """

    def __init__(
        self,
        connection: Connection,
        dialect: Dialect,
        log_sql: bool = False,
        cancelled: Callable[[], bool] | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> None:
        self.connection = connection
        self.dialect = dialect
        self.log_sql = log_sql
        self.cancelled = cancelled
        self.execution_options = dict(execution_options or {})

    def execute(self, query: CompiledQuery) -> CursorResult[Any]:
        """
        Run one statement.

        Raises:
            QueryCancelledError: If the host cancelled before the statement
            ConstraintViolationError: On integrity errors
            DatabaseError: On any other driver error
        """
        if self.cancelled is not None and self.cancelled():
            raise QueryCancelledError(query.operation, query.table)

        start = time.perf_counter()
        try:
            result = self.connection.exec_driver_sql(
                query.sql,
                query.params or None,
                execution_options=self.execution_options or None,
            )
        except IntegrityError as e:
            message = driver_message(e)
            logger.debug(
                "Constraint violation",
                table=query.table,
                operation=query.operation,
                dialect=self.dialect.name,
            )
            raise ConstraintViolationError(
                query.operation, query.table, message, dialect=self.dialect.name
            ) from e
        except DBAPIError as e:
            message = driver_message(e)
            logger.warning(
                "Statement failed",
                table=query.table,
                operation=query.operation,
                dialect=self.dialect.name,
                error=message,
            )
            raise DatabaseError(
                query.operation, query.table, message, dialect=self.dialect.name
            ) from e

        duration_ms = (time.perf_counter() - start) * 1000
        extra: dict[str, Any] = {}
        if self.log_sql:
            extra["sql"] = query.sql
        logger.debug(
            f"{query.operation} executed",
            table=query.table,
            operation=query.operation,
            dialect=self.dialect.name,
            duration_ms=round(duration_ms, 3),
            **extra,
        )
        return result

    def fetch_all(self, query: CompiledQuery) -> list[dict[str, Any]]:
        rows = [dict(row) for row in self.execute(query).mappings()]
        logger.debug("Rows fetched", table=query.table, row_count=len(rows))
        return rows

    def fetch_one(self, query: CompiledQuery) -> dict[str, Any] | None:
        row = self.execute(query).mappings().first()
        return dict(row) if row is not None else None

    def scalar(self, query: CompiledQuery) -> Any:
        return self.execute(query).scalar()

    def rowcount(self, query: CompiledQuery) -> int:
        return self.execute(query).rowcount
