"""
Error taxonomy for recordql.

All raised recordql errors inherit from RecordQLError and include:
- A unique error code for programmatic handling
- A human-readable message
- Optional retry hints describing how to fix the call

Per-field validation failures are not raised. They travel as FieldError
values on a Record (see recordql.core.types).
"""

from typing import Any


class RecordQLError(Exception):
    """
    Base class for all recordql errors.

    Attributes:
        code: Unique error code for programmatic handling
        message: Human-readable error message
        retry_hints: Suggestions for how to fix the call
        details: Additional error context
    """

    code: str = "RECORDQL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        retry_hints: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retry_hints = retry_hints or []
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a dictionary for serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "retry_hints": self.retry_hints,
            "details": self.details,
        }


class InvalidIdentifierError(RecordQLError):
    """A table, column or direction failed the identifier allow-list."""

    code = "INVALID_IDENTIFIER"

    def __init__(
        self,
        identifiers: str | list[str],
        kind: str = "identifier",
        **kwargs: Any,
    ) -> None:
        names = [identifiers] if isinstance(identifiers, str) else list(identifiers)
        quoted = ", ".join(repr(n) for n in names)
        if kind == "direction":
            hints = ["Sort direction must be ASC or DESC"]
        else:
            hints = [
                "Identifiers must start with a letter or underscore, contain only "
                "letters, digits and underscores, and be at most 64 characters"
            ]
        super().__init__(
            f"Invalid {kind}{'s' if len(names) > 1 else ''}: {quoted}",
            retry_hints=hints,
            details={"identifiers": names, "kind": kind},
            **kwargs,
        )


class SchemaDefinitionError(RecordQLError):
    """A schema definition violates one of its invariants."""

    code = "SCHEMA_DEFINITION"

    def __init__(
        self,
        message: str,
        schema: str | None = None,
        field: str | None = None,
        **kwargs: Any,
    ) -> None:
        prefix = ""
        if schema and field:
            prefix = f"{schema}.{field}: "
        elif schema or field:
            prefix = f"{schema or field}: "
        super().__init__(
            f"{prefix}{message}",
            details={"schema": schema, "field": field},
            **kwargs,
        )


class UnconditionalMutationError(RecordQLError):
    """An update or delete was requested without any filter."""

    code = "UNCONDITIONAL_MUTATION"

    def __init__(self, operation: str, table: str, **kwargs: Any) -> None:
        super().__init__(
            f"Refusing to {operation} every row of '{table}' without a filter",
            retry_hints=[
                "Provide at least one filter condition",
                f"Use {operation}_all() to intentionally affect the whole table",
            ],
            details={"operation": operation, "table": table},
            **kwargs,
        )


class InvalidQueryError(RecordQLError):
    """A query or mutation intent is malformed."""

    code = "INVALID_QUERY"

    def __init__(self, message: str, table: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", None) or {}
        if table is not None:
            details["table"] = table
        super().__init__(message, details=details, **kwargs)


class DatabaseError(RecordQLError):
    """
    An error reported by the database driver.

    Carries the operation and table the statement targeted. The SQL text
    itself is never included.
    """

    code = "DATABASE_ERROR"

    def __init__(
        self,
        operation: str,
        table: str | None,
        driver_message: str,
        dialect: str | None = None,
        **kwargs: Any,
    ) -> None:
        self.operation = operation
        self.table = table
        self.driver_message = driver_message
        self.dialect = dialect
        target = f" on '{table}'" if table else ""
        super().__init__(
            f"Database error during {operation}{target}: {driver_message}",
            details={
                "operation": operation,
                "table": table,
                "dialect": dialect,
                "driver_message": driver_message,
            },
            **kwargs,
        )


class ConstraintViolationError(DatabaseError):
    """An integrity constraint was violated."""

    code = "CONSTRAINT_VIOLATION"


class QueryCancelledError(RecordQLError):
    """The host cancelled the operation before the statement was sent."""

    code = "QUERY_CANCELLED"

    def __init__(self, operation: str, table: str | None = None, **kwargs: Any) -> None:
        super().__init__(
            f"{operation} on '{table}' was cancelled" if table else f"{operation} was cancelled",
            details={"operation": operation, "table": table},
            **kwargs,
        )


class RecordValidationError(RecordQLError):
    """
    A Record with errors was promoted to a raised error.

    Raised by Record.raise_for_errors() when the caller decides that a
    validation failure must abort the surrounding transaction.
    """

    code = "RECORD_INVALID"

    def __init__(
        self,
        schema: str,
        errors: list[dict[str, Any]],
        **kwargs: Any,
    ) -> None:
        self.errors = errors
        fields = ", ".join(e["field"] for e in errors)
        super().__init__(
            f"{schema} record is invalid ({fields})",
            retry_hints=[e["message"] for e in errors],
            details={"schema": schema, "errors": errors},
            **kwargs,
        )
