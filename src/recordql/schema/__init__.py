"""
recordql schema module.

Schemas, type casting, field validation, Records and Tables.
"""

from recordql.schema.casting import cast_value
from recordql.schema.ids import generate_id, is_valid_ulid, is_valid_uuid, new_ulid, new_uuid
from recordql.schema.record import Record
from recordql.schema.schema import Schema, humanize, parse_schema
from recordql.schema.table import Table
from recordql.schema.validation import check_field, validate_fields

__all__ = [
    "Schema",
    "parse_schema",
    "humanize",
    "Record",
    "Table",
    "cast_value",
    "check_field",
    "validate_fields",
    "generate_id",
    "new_ulid",
    "new_uuid",
    "is_valid_ulid",
    "is_valid_uuid",
]
