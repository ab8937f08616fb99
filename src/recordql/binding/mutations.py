"""
Mutation execution for table bindings.

Every write validates first and sends nothing to the database when
validation fails. Unique violations reported by the database come back as
Records carrying a UNIQUE error; every other failure is raised.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from recordql.core.dsl import (
    Condition,
    ConditionOp,
    DeleteExpression,
    InsertExpression,
    ResultShape,
    UpdateExpression,
)
from recordql.core.errors import (
    ConstraintViolationError,
    InvalidQueryError,
    UnconditionalMutationError,
)
from recordql.core.types import FieldError
from recordql.logging import get_logger
from recordql.schema.ids import generate_id
from recordql.schema.record import Record
from recordql.schema.table import Table
from recordql.schema.validation import validate_fields
from recordql.sql.compiler import CompiledQuery, Filters, conditions_from_filter
from recordql.sql.constraints import translate_unique_violation

if TYPE_CHECKING:
    from recordql.binding.table import TableBinding

logger = get_logger(__name__)


class MutationExecutor:
    """
    Runs inserts, updates and deletes for one TableBinding.
    """

    def __init__(self, binding: "TableBinding") -> None:
        self.binding = binding
        self.schema = binding.schema
        self.table = binding.table
        self.compiler = binding.compiler
        self.executor = binding.executor
        self.coordinator = binding.coordinator
        # A failed statement poisons the whole transaction on some engines
        self.savepoint = binding.dialect.error_aborts_transaction

    # =========================================================================
    # INSERT
    # =========================================================================

    def insert(self, data: Mapping[str, Any]) -> Record:
        """
        Validate and insert one row.

        Returns:
            The stored row read back from the database, or the input Record
            with errors when validation or a unique constraint rejects it
        """
        record = self._prepare_insert(data)
        if not record.is_valid():
            logger.debug("Insert rejected by validation", table=self.table, fields=list(record.errors()))
            return record

        values = self._row_values(record)
        try:
            with self.coordinator.scope(savepoint=self.savepoint):
                row = self._insert_and_fetch(values)
        except ConstraintViolationError as e:
            return self._unique_or_raise(e, record)
        return self.schema.from_row(row)

    def execute_insert(self, expression: InsertExpression) -> Record | Table | int | None:
        """Run an insert expression and shape the result per its terminal."""
        record = self._prepare_insert({a.column: a.value for a in expression.assignments})
        if not record.is_valid():
            return record

        values = self._row_values(record)
        shape = expression.terminal
        try:
            with self.coordinator.scope(savepoint=self.savepoint):
                query = self.compiler.compile_insert(
                    self.table,
                    values,
                    returning=shape in (ResultShape.ONE, ResultShape.MANY),
                    conflict_columns=expression.conflict_columns,
                    shape=shape,
                )
                if shape == ResultShape.EXECUTE:
                    self.executor.execute(query)
                    return None
                if shape == ResultShape.COUNT:
                    return self.executor.rowcount(query)
                if query.returning:
                    row = self.executor.fetch_one(query)
                elif expression.conflict_columns:
                    self.executor.execute(query)
                    key = {c: values.get(c) for c in expression.conflict_columns}
                    row = self.executor.fetch_one(
                        self.compiler.compile_select(self.table, key, limit=1)
                    )
                else:
                    row = self._fetch_inserted(query, values)
        except ConstraintViolationError as e:
            return self._unique_or_raise(e, record)

        result = self.schema.from_row(row) if row is not None else record
        if shape == ResultShape.MANY:
            return Table(self.schema, [result])
        return result

    def _prepare_insert(self, data: Mapping[str, Any]) -> Record:
        values = data.data() if isinstance(data, Record) else dict(data)
        identity = self.schema.identity
        if identity is not None and identity.client_generated:
            if values.get(identity.name) in (None, ""):
                values[identity.name] = generate_id(identity.id_strategy)  # type: ignore[arg-type]
        return self.schema(values).validate()

    def _row_values(self, record: Record) -> dict[str, Any]:
        # Columns left NULL fall back to the database default
        return self.schema.to_row({k: v for k, v in record.data().items() if v is not None})

    def _insert_and_fetch(self, values: dict[str, Any]) -> dict[str, Any]:
        query = self.compiler.compile_insert(self.table, values, returning=True)
        if query.returning:
            row = self.executor.fetch_one(query)
            return row if row is not None else values
        return self._fetch_inserted(query, values) or values

    def _fetch_inserted(self, query: CompiledQuery, values: dict[str, Any]) -> dict[str, Any] | None:
        """Run the INSERT, then read the row back on the same connection."""
        self.executor.execute(query)
        identity = self.schema.identity
        if identity is None:
            return values
        key = values.get(identity.name)
        if key is None:
            key = self.executor.scalar(self.compiler.compile_last_insert_id(self.table))
        return self.executor.fetch_one(
            self.compiler.compile_select(
                self.table, {identity.name: key}, limit=1, shape=ResultShape.ONE
            )
        )

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update(self, filters: Filters, data: Mapping[str, Any]) -> int | Record:
        """
        Update the rows matching ``filters``.

        Returns:
            The number of affected rows, or a Record with errors

        Raises:
            UnconditionalMutationError: If ``filters`` is empty
        """
        if not conditions_from_filter(filters):
            raise UnconditionalMutationError("update", self.table)
        return self._update(filters, data)

    def update_all(self, data: Mapping[str, Any]) -> int | Record:
        """Update every row of the table."""
        return self._update(None, data)

    def execute_update(self, expression: UpdateExpression) -> Record | Table | int | None:
        """Run an update expression and shape the result per its terminal."""
        if not expression.conditions:
            raise UnconditionalMutationError("update", self.table)
        changes, invalid = self._prepare_update({a.column: a.value for a in expression.assignments})
        if invalid is not None:
            return invalid

        shape = expression.terminal
        wants_rows = shape in (ResultShape.ONE, ResultShape.MANY)
        conditions = self.schema.encode_filters(expression.conditions)
        try:
            with self.coordinator.scope(savepoint=self.savepoint):
                query = self.compiler.compile_update(
                    self.table,
                    conditions,
                    self.schema.to_row(changes),
                    returning=wants_rows,
                    shape=shape,
                )
                if not wants_rows:
                    count = self.executor.rowcount(query)
                    return count if shape == ResultShape.COUNT else None
                if query.returning:
                    rows = self.executor.fetch_all(query)
                else:
                    keys = self._matching_keys(conditions)
                    self.executor.execute(query)
                    rows = self._rows_by_keys(keys)
        except ConstraintViolationError as e:
            return self._unique_or_raise(e, Record(self.schema, changes, validated=True))
        return self._shape_rows(rows, shape)

    def _update(self, filters: Filters, data: Mapping[str, Any]) -> int | Record:
        changes, invalid = self._prepare_update(data)
        if invalid is not None:
            return invalid
        try:
            with self.coordinator.scope(savepoint=self.savepoint):
                row = self.schema.to_row(changes)
                if filters:
                    query = self.compiler.compile_update(
                        self.table, self.schema.encode_filters(filters), row
                    )
                else:
                    query = self.compiler.compile_update_all(self.table, row)
                return self.executor.rowcount(query)
        except ConstraintViolationError as e:
            return self._unique_or_raise(e, Record(self.schema, changes, validated=True))

    def _prepare_update(self, data: Mapping[str, Any]) -> tuple[dict[str, Any], Record | None]:
        if not data:
            raise InvalidQueryError("update requires at least one field", table=self.table)
        identity = self.schema.identity_column
        if identity in data:
            raise InvalidQueryError(
                f"'{identity}' cannot be changed by an update", table=self.table
            )
        changes, errors = validate_fields(self.schema, data, partial=True)
        if not changes:
            raise InvalidQueryError(
                "update has no fields known to the schema",
                table=self.table,
                retry_hints=[f"Known fields: {', '.join(self.schema.field_names())}"],
            )
        if errors:
            logger.debug("Update rejected by validation", table=self.table, fields=[e.field for e in errors])
            return changes, Record(self.schema, changes, {e.field: e for e in errors}, validated=True)
        return changes, None

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete(self, filters: Filters) -> int:
        """
        Delete the rows matching ``filters``.

        Raises:
            UnconditionalMutationError: If ``filters`` is empty
        """
        query = self.compiler.compile_delete(self.table, self.schema.encode_filters(filters))
        with self.coordinator.scope():
            return self.executor.rowcount(query)

    def delete_all(self) -> int:
        """Delete every row of the table."""
        query = self.compiler.compile_delete_all(self.table)
        with self.coordinator.scope():
            return self.executor.rowcount(query)

    def execute_delete(self, expression: DeleteExpression) -> Record | Table | int | None:
        """Run a delete expression and shape the result per its terminal."""
        shape = expression.terminal
        wants_rows = shape in (ResultShape.ONE, ResultShape.MANY)
        conditions = self.schema.encode_filters(expression.conditions)
        query = self.compiler.compile_delete(
            self.table, conditions, returning=wants_rows, shape=shape
        )
        with self.coordinator.scope():
            if not wants_rows:
                count = self.executor.rowcount(query)
                return count if shape == ResultShape.COUNT else None
            if query.returning:
                rows = self.executor.fetch_all(query)
            else:
                rows = self.executor.fetch_all(
                    self.compiler.compile_select(self.table, conditions)
                )
                self.executor.execute(query)
        return self._shape_rows(rows, shape)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _matching_keys(self, filters: Filters) -> list[Any]:
        identity = self.schema.identity
        if identity is None:
            raise InvalidQueryError(
                "returning rows from an update needs an identity field", table=self.table
            )
        rows = self.executor.fetch_all(
            self.compiler.compile_select(self.table, filters, columns=[identity.name])
        )
        return [row[identity.name] for row in rows]

    def _rows_by_keys(self, keys: list[Any]) -> list[dict[str, Any]]:
        if not keys:
            return []
        identity = self.schema.identity_column
        return self.executor.fetch_all(
            self.compiler.compile_select(
                self.table,
                [Condition(column=identity, op=ConditionOp.IN, value=keys)],
            )
        )

    def _shape_rows(self, rows: list[dict[str, Any]], shape: ResultShape) -> Record | Table | None:
        records = [self.schema.from_row(row) for row in rows]
        if shape == ResultShape.ONE:
            return records[0] if records else None
        return Table(self.schema, records)

    def _unique_or_raise(self, exc: ConstraintViolationError, record: Record) -> Record:
        error: FieldError | None = translate_unique_violation(
            self.binding.dialect.name, exc.driver_message, self.schema, self.table, record.data()
        )
        if error is None:
            raise exc
        logger.info("Unique constraint rejected write", table=self.table, field=error.field)
        return record.with_error(error.field, error.message, error.code)
