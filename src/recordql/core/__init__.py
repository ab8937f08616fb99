"""
recordql core module.

Identifier allow-list, error taxonomy, shared types and the expression
models consumed from the host evaluator.
"""

from recordql.core.dsl import (
    Aggregate,
    Assignment,
    Condition,
    ConditionGroup,
    ConditionOp,
    DeleteExpression,
    Expression,
    InsertExpression,
    ResultShape,
    SelectExpression,
    UpdateExpression,
)
from recordql.core.errors import (
    ConstraintViolationError,
    DatabaseError,
    InvalidIdentifierError,
    InvalidQueryError,
    QueryCancelledError,
    RecordQLError,
    RecordValidationError,
    SchemaDefinitionError,
    UnconditionalMutationError,
)
from recordql.core.identifiers import (
    is_valid_identifier,
    quote_identifier,
    validate_direction,
    validate_identifier,
    validate_identifiers,
)
from recordql.core.types import (
    AggregateFunction,
    ErrorCode,
    FieldError,
    FieldType,
    IdStrategy,
    OrderSpec,
    QueryOptions,
    SchemaField,
)

__all__ = [
    # DSL
    "Aggregate",
    "Assignment",
    "Condition",
    "ConditionGroup",
    "ConditionOp",
    "DeleteExpression",
    "Expression",
    "InsertExpression",
    "ResultShape",
    "SelectExpression",
    "UpdateExpression",
    # Errors
    "RecordQLError",
    "InvalidIdentifierError",
    "SchemaDefinitionError",
    "UnconditionalMutationError",
    "InvalidQueryError",
    "DatabaseError",
    "ConstraintViolationError",
    "QueryCancelledError",
    "RecordValidationError",
    # Identifiers
    "is_valid_identifier",
    "validate_identifier",
    "validate_identifiers",
    "validate_direction",
    "quote_identifier",
    # Types
    "AggregateFunction",
    "ErrorCode",
    "FieldError",
    "FieldType",
    "IdStrategy",
    "OrderSpec",
    "QueryOptions",
    "SchemaField",
]
