"""
Table bindings: a Schema bound to a physical table on a borrowed connection.
"""

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from sqlalchemy import Connection

from recordql.binding.executor import StatementExecutor
from recordql.binding.mutations import MutationExecutor
from recordql.binding.transaction import TransactionCoordinator
from recordql.core.dsl import (
    DeleteExpression,
    Expression,
    InsertExpression,
    ResultShape,
    SelectExpression,
    UpdateExpression,
)
from recordql.core.errors import InvalidQueryError
from recordql.core.identifiers import validate_identifier
from recordql.core.types import AggregateFunction, FieldType, OrderSpec, QueryOptions
from recordql.logging import get_logger
from recordql.schema.casting import decode_value
from recordql.schema.record import Record
from recordql.schema.schema import Schema
from recordql.schema.table import Table
from recordql.sql.compiler import CompiledQuery, Filters, QueryCompiler
from recordql.sql.dialects import Dialect, dialect_for
from recordql.utils.defaults import DEFAULT_PROD, BindingDefaults

logger = get_logger(__name__)

T = TypeVar("T")

Options = QueryOptions | Mapping[str, Any] | None


class TableBinding:
    """
    Schema + table name + borrowed connection.

    All SQL is built from immutable state plus call arguments, so one
    binding can serve many callers. The connection is never closed or
    reconfigured here.

    Usage:
        users = TableBinding(UserSchema, "users", connection)
        users.insert({"email": "ann@example.com", "role": "admin"})
        admins = users.where({"role": "admin"}, {"orderBy": "email"})
        total = users.count()
    """

    def __init__(
        self,
        schema: Schema,
        table: str,
        connection: Connection,
        *,
        defaults: BindingDefaults = DEFAULT_PROD,
        dialect: Dialect | None = None,
        soft_delete_column: str | None = None,
        cancelled: Callable[[], bool] | None = None,
        execution_options: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Bind a schema to a table.

        Args:
            schema: Schema of the rows
            table: Physical table name
            connection: Borrowed SQLAlchemy connection
            defaults: Configuration profile
            dialect: Dialect override; detected from the connection otherwise
            soft_delete_column: Nullable timestamp column marking deleted rows
            cancelled: Host cancellation signal checked before each statement
            execution_options: Driver execution options for every statement

        Raises:
            InvalidIdentifierError: If the table or soft-delete column name is
                not a valid identifier
        """
        self.schema = schema
        self.table = validate_identifier(table)
        self.connection = connection
        self.defaults = defaults
        if soft_delete_column is not None:
            validate_identifier(soft_delete_column)
        self.soft_delete_column = soft_delete_column

        self.dialect = dialect or dialect_for(connection, enable_returning=defaults.enable_returning)
        self.compiler = QueryCompiler(self.dialect, soft_delete_column=soft_delete_column)
        self.executor = StatementExecutor(
            connection,
            self.dialect,
            log_sql=defaults.log_sql,
            cancelled=cancelled,
            execution_options=execution_options,
        )
        self.coordinator = TransactionCoordinator(connection)
        self.mutations = MutationExecutor(self)

        # Built once at bind time
        self._create_table = self.compiler.compile_create_table(schema, self.table)

        if defaults.create_tables:
            self.create_table()

    def __repr__(self) -> str:
        return f"TableBinding({self.schema.name!r}, table={self.table!r}, dialect={self.dialect.name!r})"

    # =========================================================================
    # DDL
    # =========================================================================

    def create_table_sql(self) -> str:
        """The CREATE TABLE statement generated for the schema."""
        return self._create_table.sql

    def create_table(self) -> None:
        """Create the table if it does not exist yet."""
        with self.coordinator.scope():
            self.executor.execute(self._create_table)
        logger.info("Table ensured", table=self.table, dialect=self.dialect.name)

    # =========================================================================
    # READS
    # =========================================================================

    def all(self, options: Options = None) -> Table:
        """
        Read rows with optional ordering, projection and pagination.

        Without an explicit limit at most ``defaults.default_row_limit`` rows
        come back; pass ``limit=0`` to read everything.
        """
        opts = QueryOptions.coerce(options)
        limit = opts.limit if opts.limit is not None else self.defaults.default_row_limit
        return self._table(
            self.compiler.compile_select(
                self.table, None, opts.select, opts.order_by, limit, opts.offset
            )
        )

    def where(self, filters: Filters, options: Options = None) -> Table:
        """Rows whose columns equal every value in ``filters``. No implicit cap."""
        opts = QueryOptions.coerce(options)
        return self._table(
            self.compiler.compile_select(
                self.table,
                self.schema.encode_filters(filters),
                opts.select,
                opts.order_by,
                opts.limit,
                opts.offset,
            )
        )

    def find(self, id: Any) -> Record | None:
        """The row with the given identity value, or None."""
        return self._one(
            self.compiler.compile_select(
                self.table, {self.schema.identity_column: id}, limit=1, shape=ResultShape.ONE
            )
        )

    def find_by(self, filters: Filters, options: Options = None) -> Record | None:
        """The first row matching ``filters``, or None."""
        opts = QueryOptions.coerce(options)
        return self._one(
            self.compiler.compile_select(
                self.table,
                self.schema.encode_filters(filters),
                opts.select,
                opts.order_by,
                1,
                opts.offset,
                ResultShape.ONE,
            )
        )

    def first(self, n: int | Options = None, options: Options = None) -> Record | Table | None:
        """
        The first row by identity, or the first ``n`` rows.

        An explicit ``orderBy`` replaces the identity ordering.
        """
        return self._edge(n, options, reverse=False)

    def last(self, n: int | Options = None, options: Options = None) -> Record | Table | None:
        """
        The last row by identity, or the last ``n`` rows.

        An explicit ``orderBy`` is used with every direction reversed.
        """
        return self._edge(n, options, reverse=True)

    def exists(self, filters: Filters = None) -> bool:
        """True when at least one row matches."""
        with self.coordinator.scope():
            query = self.compiler.compile_exists(self.table, self.schema.encode_filters(filters))
            return self.executor.fetch_one(query) is not None

    # =========================================================================
    # AGGREGATES
    # =========================================================================

    def count(self, column: str | Mapping[str, Any] | None = None, filters: Filters = None) -> int:
        """
        Number of matching rows (or of non-null values of ``column``).

        ``count({"role": "admin"})`` is accepted as shorthand for
        ``count(None, {"role": "admin"})``.
        """
        if isinstance(column, Mapping):
            column, filters = None, column
        return int(self._aggregate(AggregateFunction.COUNT, column, filters) or 0)

    def sum(self, column: str, filters: Filters = None) -> Any:
        """Sum of ``column``; None when no row matches."""
        return self._typed(column, self._aggregate(AggregateFunction.SUM, column, filters))

    def avg(self, column: str, filters: Filters = None) -> float | None:
        """Average of ``column``; None when no row matches."""
        value = self._aggregate(AggregateFunction.AVG, column, filters)
        if value is None:
            return None
        if self._is_money(column):
            return float(value) / 100
        return float(value)

    def min(self, column: str, filters: Filters = None) -> Any:
        """Smallest value of ``column``; None when no row matches."""
        return self._typed(column, self._aggregate(AggregateFunction.MIN, column, filters))

    def max(self, column: str, filters: Filters = None) -> Any:
        """Largest value of ``column``; None when no row matches."""
        return self._typed(column, self._aggregate(AggregateFunction.MAX, column, filters))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def insert(self, data: Mapping[str, Any]) -> Record:
        """Validate and insert one row. See MutationExecutor.insert."""
        return self.mutations.insert(data)

    def update(self, filters: Filters, data: Mapping[str, Any]) -> int | Record:
        """Update matching rows; refuses an empty filter."""
        return self.mutations.update(filters, data)

    def update_all(self, data: Mapping[str, Any]) -> int | Record:
        """Update every row."""
        return self.mutations.update_all(data)

    def delete(self, filters: Filters) -> int:
        """Delete matching rows; refuses an empty filter."""
        return self.mutations.delete(filters)

    def delete_all(self) -> int:
        """Delete every row."""
        return self.mutations.delete_all()

    def transaction(self, fn: Callable[["TableBinding"], T]) -> T:
        """
        Run ``fn(self)`` in one transaction.

        Any exception raised by ``fn`` rolls back every write made through
        this binding's connection; a normal return commits.
        """
        return self.coordinator.run(lambda _connection: fn(self))

    # =========================================================================
    # EXPRESSIONS
    # =========================================================================

    def execute(self, expression: Expression) -> Any:
        """
        Run an expression from the host evaluator.

        The result shape follows the expression's terminal: a Record or
        None for ONE, a Table for MANY, an int for COUNT, a bool for
        EXISTS and None for EXECUTE. Grouped selects yield plain dict rows.
        """
        if expression.table != self.table:
            raise InvalidQueryError(
                f"expression targets '{expression.table}' but this binding is for '{self.table}'",
                table=self.table,
            )
        match expression:
            case SelectExpression():
                return self._execute_select(expression)
            case InsertExpression():
                return self.mutations.execute_insert(expression)
            case UpdateExpression():
                return self.mutations.execute_update(expression)
            case DeleteExpression():
                return self.mutations.execute_delete(expression)
            case _:
                raise InvalidQueryError(f"Unsupported expression {type(expression).__name__}")

    def _execute_select(self, expression: SelectExpression) -> Any:
        query = self.compiler.compile_select_expression(
            expression.model_copy(
                update={"conditions": self.schema.encode_filters(expression.conditions)}
            )
        )
        with self.coordinator.scope():
            match query.shape:
                case ResultShape.COUNT:
                    return int(self.executor.scalar(query) or 0)
                case ResultShape.EXISTS:
                    return self.executor.fetch_one(query) is not None
                case _:
                    rows = self.executor.fetch_all(query)
        if expression.aggregates or expression.group_by:
            return rows
        records = [self.schema.from_row(row) for row in rows]
        if query.shape == ResultShape.ONE:
            return records[0] if records else None
        return Table(self.schema, records)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _table(self, query: CompiledQuery) -> Table:
        with self.coordinator.scope():
            rows = self.executor.fetch_all(query)
        return Table(self.schema, [self.schema.from_row(row) for row in rows])

    def _one(self, query: CompiledQuery) -> Record | None:
        with self.coordinator.scope():
            row = self.executor.fetch_one(query)
        return self.schema.from_row(row) if row is not None else None

    def _edge(self, n: int | Options, options: Options, reverse: bool) -> Record | Table | None:
        if isinstance(n, bool):
            raise InvalidQueryError(f"n must be an integer, got {n!r}", table=self.table)
        if n is not None and not isinstance(n, int):
            n, options = None, n
        if n is not None and n < 1:
            raise InvalidQueryError(f"n must be at least 1, got {n}", table=self.table)

        opts = QueryOptions.coerce(options)
        if opts.order_by:
            order = tuple(o.reversed() for o in opts.order_by) if reverse else opts.order_by
        else:
            order = (OrderSpec(column=self.schema.identity_column, direction="DESC" if reverse else "ASC"),)

        if n is None:
            return self._one(
                self.compiler.compile_select(
                    self.table, None, opts.select, order, 1, opts.offset, ResultShape.ONE
                )
            )
        return self._table(
            self.compiler.compile_select(self.table, None, opts.select, order, n, opts.offset)
        )

    def _aggregate(self, function: AggregateFunction, column: str | None, filters: Filters) -> Any:
        query = self.compiler.compile_aggregate(
            self.table, function, column, self.schema.encode_filters(filters)
        )
        with self.coordinator.scope():
            return self.executor.scalar(query)

    def _typed(self, column: str, value: Any) -> Any:
        field = self.schema.get_field(column)
        if field is None or value is None:
            return value
        casted, ok = decode_value(field, value)
        return casted if ok else value

    def _is_money(self, column: str) -> bool:
        field = self.schema.get_field(column)
        return field is not None and field.type == FieldType.MONEY
