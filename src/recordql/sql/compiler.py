"""
Query compiler.

Turns read and mutation intents into dialect-specific SQL text plus a
positional parameter tuple. Every identifier goes through the dialect's
validate-then-quote step and every value becomes a bound parameter, so
nothing the caller supplies is ever spliced into the SQL text.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from recordql.core.dsl import (
    Condition,
    ConditionGroup,
    ConditionNode,
    ConditionOp,
    DeleteExpression,
    Expression,
    InsertExpression,
    ResultShape,
    SelectExpression,
    UpdateExpression,
)
from recordql.core.errors import InvalidQueryError, UnconditionalMutationError
from recordql.core.identifiers import validate_direction
from recordql.core.types import AggregateFunction, OrderSpec
from recordql.schema.schema import Schema
from recordql.sql.ddl import build_create_table_sql
from recordql.sql.dialects import Dialect

_COMPARISONS = {
    ConditionOp.EQ: "=",
    ConditionOp.NE: "<>",
    ConditionOp.LT: "<",
    ConditionOp.LTE: "<=",
    ConditionOp.GT: ">",
    ConditionOp.GTE: ">=",
    ConditionOp.LIKE: "LIKE",
}

Filters = Mapping[str, Any] | Sequence[ConditionNode] | None


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text and parameters ready for the driver."""

    sql: str
    params: tuple[Any, ...]
    operation: str
    table: str
    shape: ResultShape = ResultShape.MANY
    returning: bool = False


class _Params:
    """Collects bound values and hands out placeholders in order."""

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(self.dialect.adapt_param(value))
        return self.dialect.placeholder(len(self.values))

    def freeze(self) -> tuple[Any, ...]:
        return tuple(self.values)


def conditions_from_filter(filters: Filters) -> tuple[ConditionNode, ...]:
    """
    Normalize a filter map or condition list.

    A filter map becomes one equality condition per key, ANDed together in
    the map's order.
    """
    if not filters:
        return ()
    if isinstance(filters, Mapping):
        return tuple(Condition(column=k, op=ConditionOp.EQ, value=v) for k, v in filters.items())
    return tuple(filters)


class QueryCompiler:
    """
    Compiles intents into CompiledQuery objects for one dialect.

    Args:
        dialect: Target dialect
        soft_delete_column: When set, reads and updates only see rows where
            this column IS NULL, and deletes set it instead of removing rows
    """

    def __init__(self, dialect: Dialect, soft_delete_column: str | None = None) -> None:
        self.dialect = dialect
        self.soft_delete_column = soft_delete_column

    # =========================================================================
    # READS
    # =========================================================================

    def compile_select(
        self,
        table: str,
        filters: Filters = None,
        columns: Sequence[str] | None = None,
        order_by: Sequence[OrderSpec] = (),
        limit: int | None = None,
        offset: int | None = None,
        shape: ResultShape = ResultShape.MANY,
    ) -> CompiledQuery:
        """
        Compile a SELECT.

        ``columns=None`` selects every column. A ``limit`` of zero or less
        means no limit.
        """
        params = _Params(self.dialect)
        projection = self._projection(columns)
        sql = f"SELECT {projection} FROM {self.dialect.quote(table)}"
        sql += self._where(filters, params)
        sql += self._order(order_by)
        sql += self._limit(limit, offset, params)
        return CompiledQuery(sql, params.freeze(), "select", table, shape)

    def compile_exists(self, table: str, filters: Filters = None) -> CompiledQuery:
        """``SELECT 1 ... LIMIT 1``; never materializes rows."""
        params = _Params(self.dialect)
        sql = f"SELECT 1 FROM {self.dialect.quote(table)}"
        sql += self._where(filters, params)
        sql += " LIMIT 1"
        return CompiledQuery(sql, params.freeze(), "exists", table, ResultShape.EXISTS)

    def compile_aggregate(
        self,
        table: str,
        function: AggregateFunction | str,
        column: str | None = None,
        filters: Filters = None,
    ) -> CompiledQuery:
        """Compile ``SELECT FUNC(column) FROM table [WHERE ...]``."""
        function = AggregateFunction(function)
        params = _Params(self.dialect)
        expr = self._aggregate_expr(function, column)
        sql = f"SELECT {expr} FROM {self.dialect.quote(table)}"
        sql += self._where(filters, params)
        return CompiledQuery(sql, params.freeze(), function.value, table, ResultShape.ONE)

    def compile_select_expression(self, expr: SelectExpression) -> CompiledQuery:
        """Compile a full select expression, including grouping."""
        params = _Params(self.dialect)
        table = self.dialect.quote(expr.table)

        if expr.terminal == ResultShape.COUNT:
            sql = f"SELECT COUNT(*) AS {self.dialect.quote('count')} FROM {table}"
            sql += self._where(expr.conditions, params)
            return CompiledQuery(sql, params.freeze(), "count", expr.table, ResultShape.COUNT)

        if expr.terminal == ResultShape.EXISTS:
            sql = f"SELECT 1 FROM {table}"
            sql += self._where(expr.conditions, params)
            sql += " LIMIT 1"
            return CompiledQuery(sql, params.freeze(), "exists", expr.table, ResultShape.EXISTS)

        aliases = {a.alias: self._aggregate_expr(a.function, a.column) for a in expr.aggregates}
        if expr.aggregates or expr.group_by:
            items = [self.dialect.quote(c) for c in expr.group_by]
            items += [f"{sql_expr} AS {self.dialect.quote(alias)}" for alias, sql_expr in aliases.items()]
            if expr.columns:
                raise InvalidQueryError(
                    "columns cannot be combined with group_by/aggregates", table=expr.table
                )
            projection = ", ".join(items)
        else:
            projection = self._projection(expr.columns)

        sql = f"SELECT {projection} FROM {table}"
        sql += self._where(expr.conditions, params)
        if expr.group_by:
            sql += " GROUP BY " + ", ".join(self.dialect.quote(c) for c in expr.group_by)
        if expr.having:
            if not aliases:
                raise InvalidQueryError("having requires aggregates", table=expr.table)

            def resolve(column: str) -> str:
                return aliases.get(column) or self.dialect.quote(column)

            sql += " HAVING " + self._fold(expr.having, params, resolve)
        sql += self._order(expr.order_by)

        limit = expr.limit
        if expr.terminal == ResultShape.ONE and (limit is None or limit <= 0):
            limit = 1
        sql += self._limit(limit, expr.offset, params)
        return CompiledQuery(sql, params.freeze(), "select", expr.table, expr.terminal)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def compile_insert(
        self,
        table: str,
        values: Mapping[str, Any],
        returning: bool = False,
        conflict_columns: Sequence[str] = (),
        shape: ResultShape = ResultShape.ONE,
    ) -> CompiledQuery:
        """
        Compile an INSERT (an upsert when ``conflict_columns`` is given).

        Columns appear in the order of ``values``.
        """
        params = _Params(self.dialect)
        quoted_table = self.dialect.quote(table)
        columns = [self.dialect.quote(c) for c in values]

        if columns:
            placeholders = ", ".join(params.add(v) for v in values.values())
            sql = f"INSERT INTO {quoted_table} ({', '.join(columns)}) VALUES ({placeholders})"
        else:
            sql = self.dialect.empty_insert(quoted_table)

        if conflict_columns:
            if not columns:
                raise InvalidQueryError("upsert requires at least one column", table=table)
            conflict = [self.dialect.quote(c) for c in conflict_columns]
            updates = [c for c in columns if c not in conflict]
            sql += " " + self.dialect.upsert_clause(conflict, updates)

        returning = returning and self.dialect.supports_returning()
        if returning:
            sql += " RETURNING *"
        return CompiledQuery(sql, params.freeze(), "insert", table, shape, returning)

    def compile_update(
        self,
        table: str,
        filters: Filters,
        values: Mapping[str, Any],
        returning: bool = False,
        shape: ResultShape = ResultShape.COUNT,
    ) -> CompiledQuery:
        """
        Compile a filtered UPDATE.

        Raises:
            UnconditionalMutationError: If ``filters`` is empty
        """
        if not conditions_from_filter(filters):
            raise UnconditionalMutationError("update", table)
        return self._update(table, filters, values, returning, shape)

    def compile_update_all(self, table: str, values: Mapping[str, Any]) -> CompiledQuery:
        """Compile an UPDATE that intentionally touches every row."""
        return self._update(table, None, values, False, ResultShape.COUNT)

    def compile_delete(
        self,
        table: str,
        filters: Filters,
        returning: bool = False,
        shape: ResultShape = ResultShape.COUNT,
    ) -> CompiledQuery:
        """
        Compile a filtered DELETE.

        Raises:
            UnconditionalMutationError: If ``filters`` is empty
        """
        if not conditions_from_filter(filters):
            raise UnconditionalMutationError("delete", table)
        return self._delete(table, filters, returning, shape)

    def compile_delete_all(self, table: str) -> CompiledQuery:
        """Compile a DELETE that intentionally removes every row."""
        return self._delete(table, None, False, ResultShape.COUNT)

    def compile_last_insert_id(self, table: str) -> CompiledQuery:
        """Read back the id generated by the previous INSERT."""
        return CompiledQuery(
            self.dialect.last_insert_id_sql(), (), "last_insert_id", table, ResultShape.ONE
        )

    def compile_create_table(self, schema: Schema, table: str) -> CompiledQuery:
        """Compile the CREATE TABLE statement for ``schema``."""
        sql = build_create_table_sql(schema, table, self.dialect, self.soft_delete_column)
        return CompiledQuery(sql, (), "create_table", table, ResultShape.EXECUTE)

    def compile(self, expression: Expression) -> CompiledQuery:
        """Compile any expression from the host evaluator."""
        wants_rows = expression.terminal in (ResultShape.ONE, ResultShape.MANY)
        match expression:
            case SelectExpression():
                return self.compile_select_expression(expression)
            case InsertExpression():
                return self.compile_insert(
                    expression.table,
                    {a.column: a.value for a in expression.assignments},
                    returning=wants_rows,
                    conflict_columns=expression.conflict_columns,
                    shape=expression.terminal,
                )
            case UpdateExpression():
                return self.compile_update(
                    expression.table,
                    expression.conditions,
                    {a.column: a.value for a in expression.assignments},
                    returning=wants_rows,
                    shape=expression.terminal,
                )
            case DeleteExpression():
                return self.compile_delete(
                    expression.table,
                    expression.conditions,
                    returning=wants_rows,
                    shape=expression.terminal,
                )
            case _:
                raise InvalidQueryError(f"Unsupported expression {type(expression).__name__}")

    def _update(
        self,
        table: str,
        filters: Filters,
        values: Mapping[str, Any],
        returning: bool,
        shape: ResultShape,
    ) -> CompiledQuery:
        if not values:
            raise InvalidQueryError("update requires at least one column", table=table)
        params = _Params(self.dialect)
        sets = ", ".join(f"{self.dialect.quote(c)} = {params.add(v)}" for c, v in values.items())
        sql = f"UPDATE {self.dialect.quote(table)} SET {sets}"
        sql += self._where(filters, params)
        returning = returning and self.dialect.supports_returning()
        if returning:
            sql += " RETURNING *"
        return CompiledQuery(sql, params.freeze(), "update", table, shape, returning)

    def _delete(
        self,
        table: str,
        filters: Filters,
        returning: bool,
        shape: ResultShape,
    ) -> CompiledQuery:
        params = _Params(self.dialect)
        quoted_table = self.dialect.quote(table)
        if self.soft_delete_column:
            marker = self.dialect.quote(self.soft_delete_column)
            sql = f"UPDATE {quoted_table} SET {marker} = CURRENT_TIMESTAMP"
        else:
            sql = f"DELETE FROM {quoted_table}"
        sql += self._where(filters, params)
        returning = returning and self.dialect.supports_returning()
        if returning:
            sql += " RETURNING *"
        return CompiledQuery(sql, params.freeze(), "delete", table, shape, returning)

    # =========================================================================
    # CLAUSES
    # =========================================================================

    def _projection(self, columns: Sequence[str] | None) -> str:
        if not columns:
            return "*"
        return ", ".join(self.dialect.quote(c) for c in columns)

    def _aggregate_expr(self, function: AggregateFunction, column: str | None) -> str:
        if column is None:
            if function != AggregateFunction.COUNT:
                raise InvalidQueryError(f"{function.value} requires a column")
            return "COUNT(*)"
        return f"{function.value.upper()}({self.dialect.quote(column)})"

    def _where(self, filters: Filters, params: _Params) -> str:
        conditions = conditions_from_filter(filters)
        clauses = []
        if self.soft_delete_column:
            clauses.append(f"{self.dialect.quote(self.soft_delete_column)} IS NULL")
        if conditions:
            rendered = self._fold(conditions, params, self.dialect.quote)
            # A trailing OR already wraps the whole fold
            wrap = clauses and len(conditions) > 1 and conditions[-1].logic != "or"
            clauses.append(f"({rendered})" if wrap else rendered)
        if not clauses:
            return ""
        return " WHERE " + " AND ".join(clauses)

    def _fold(
        self,
        conditions: Sequence[ConditionNode],
        params: _Params,
        resolve: Callable[[str], str],
    ) -> str:
        """
        Join conditions left to right.

        ``a AND b OR c`` reads as ``(a AND b) OR c``: every OR wraps
        everything to its left.
        """
        expr: str | None = None
        for node in conditions:
            clause = self._render(node, params, resolve)
            if expr is None:
                expr = clause
            elif node.logic == "or":
                expr = f"({expr} OR {clause})"
            else:
                expr = f"{expr} AND {clause}"
        if expr is None:
            raise InvalidQueryError("empty condition group")
        return expr

    def _render(self, node: ConditionNode, params: _Params, resolve: Callable[[str], str]) -> str:
        if isinstance(node, ConditionGroup):
            inner = f"({self._fold(node.conditions, params, resolve)})"
            return f"NOT {inner}" if node.negated else inner

        column = resolve(node.column)
        value = node.value
        match node.op:
            case ConditionOp.EQ if value is None:
                sql = f"{column} IS NULL"
            case ConditionOp.NE if value is None:
                sql = f"{column} IS NOT NULL"
            case ConditionOp.IS_NULL:
                sql = f"{column} IS NULL"
            case ConditionOp.IS_NOT_NULL:
                sql = f"{column} IS NOT NULL"
            case ConditionOp.IN | ConditionOp.NOT_IN:
                if not isinstance(value, (list, tuple, set, frozenset)):
                    raise InvalidQueryError(
                        f"{node.op.value} on '{node.column}' needs a list of values"
                    )
                items = list(value)
                negate = node.op == ConditionOp.NOT_IN
                if not items:
                    # Nothing is IN an empty list and everything is NOT IN it
                    sql = "1 = 1" if negate else "1 = 0"
                else:
                    placeholders = ", ".join(params.add(v) for v in items)
                    sql = f"{column} {'NOT IN' if negate else 'IN'} ({placeholders})"
            case ConditionOp.BETWEEN:
                if not isinstance(value, (list, tuple)) or len(value) != 2:
                    raise InvalidQueryError(
                        f"between on '{node.column}' needs exactly two values"
                    )
                sql = f"{column} BETWEEN {params.add(value[0])} AND {params.add(value[1])}"
            case _:
                sql = f"{column} {_COMPARISONS[node.op]} {params.add(value)}"

        return f"NOT ({sql})" if node.negated else sql

    def _order(self, order_by: Sequence[OrderSpec]) -> str:
        if not order_by:
            return ""
        terms = []
        for spec in order_by:
            direction = validate_direction(spec.direction)
            terms.append(f"{self.dialect.quote(spec.column)} {direction}")
        return " ORDER BY " + ", ".join(terms)

    def _limit(self, limit: int | None, offset: int | None, params: _Params) -> str:
        if offset is not None and offset < 0:
            raise InvalidQueryError(f"offset must be >= 0, got {offset}")
        limit_ph = params.add(limit) if limit is not None and limit > 0 else None
        offset_ph = params.add(offset) if offset else None
        tail = self.dialect.limit_clause(limit_ph, offset_ph)
        return f" {tail}" if tail else ""

