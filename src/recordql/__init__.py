"""
recordql - schema-bound records and safe SQL for embedded scripting runtimes.

recordql lets host code declare typed schemas, validate data into immutable
Records, and bind a schema to a table on a borrowed SQLAlchemy connection.
Every identifier is checked against an allow-list and every value is bound
as a parameter, so scripts never splice text into SQL.
"""

__version__ = "0.1.0"

from recordql.binding.table import TableBinding
from recordql.binding.transaction import transaction
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
from recordql.core.identifiers import is_valid_identifier
from recordql.core.types import FieldError, FieldType, QueryOptions, SchemaField
from recordql.schema.record import Record
from recordql.schema.schema import Schema, parse_schema
from recordql.schema.table import Table
from recordql.utils.defaults import DEFAULT_DEV, DEFAULT_PROD, BindingDefaults

__all__ = [
    # Version
    "__version__",
    # Schema
    "Schema",
    "SchemaField",
    "FieldType",
    "parse_schema",
    "Record",
    "Table",
    "FieldError",
    # Binding
    "TableBinding",
    "QueryOptions",
    "transaction",
    "is_valid_identifier",
    # Configuration
    "BindingDefaults",
    "DEFAULT_PROD",
    "DEFAULT_DEV",
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
]
