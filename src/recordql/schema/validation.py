"""
Field validation against a schema.

Checks run per field in a fixed order and the first failure wins:

    required -> type cast and format -> length/range -> pattern -> enum

Uniqueness cannot be decided in memory and is reported by the write path
when the database rejects a duplicate.
"""

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from recordql.core.types import (
    ErrorCode,
    FieldError,
    FieldType,
    NUMERIC_TYPES,
    SchemaField,
    compile_pattern,
)
from recordql.schema.casting import cast_value
from recordql.schema.ids import is_valid_ulid, is_valid_uuid

if TYPE_CHECKING:
    from recordql.schema.schema import Schema

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$")
PHONE_PATTERN = re.compile(r"^[\d\s\+\-\(\)\.]+$")
SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

TYPE_LABELS = {
    FieldType.INT: "integer",
    FieldType.BIGINT: "integer",
    FieldType.FLOAT: "number",
    FieldType.BOOL: "boolean",
    FieldType.MONEY: "amount",
    FieldType.DATETIME: "date and time",
    FieldType.EMAIL: "email address",
    FieldType.URL: "URL",
    FieldType.PHONE: "phone number",
    FieldType.UUID: "UUID",
    FieldType.ULID: "ULID",
    FieldType.JSON: "JSON value",
}


def _format_ok(field_type: FieldType, value: Any) -> bool:
    match field_type:
        case FieldType.EMAIL:
            return EMAIL_PATTERN.fullmatch(value) is not None
        case FieldType.URL:
            return URL_PATTERN.fullmatch(value) is not None
        case FieldType.PHONE:
            return PHONE_PATTERN.fullmatch(value) is not None
        case FieldType.SLUG:
            return SLUG_PATTERN.fullmatch(value) is not None
        case FieldType.UUID:
            return is_valid_uuid(value)
        case FieldType.ULID:
            return is_valid_ulid(value)
        case _:
            return True


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def check_field(schema: "Schema", field: SchemaField, value: Any) -> tuple[Any, FieldError | None]:
    """
    Cast and check a single value.

    Returns:
        The casted value (or the original one when casting failed) and the
        first error found, if any
    """
    title = schema.title(field.name)

    def error(code: ErrorCode, message: str, bad: Any = value) -> FieldError:
        return FieldError(field=field.name, code=code, message=message, value=bad)

    if _is_blank(value) and field.type != FieldType.BOOL:
        if field.required:
            return value, error(ErrorCode.REQUIRED, f"{title} is required")
        # Stored as NULL so column CHECK constraints never see a blank
        return None, None

    casted, ok = cast_value(field, value)
    if not ok:
        label = TYPE_LABELS.get(field.type, field.type.value)
        return value, error(ErrorCode.FORMAT, f"{title} is not a valid {label}")
    if casted is None:
        if field.required:
            return casted, error(ErrorCode.REQUIRED, f"{title} is required")
        return casted, None
    if isinstance(casted, str) and not _format_ok(field.type, casted):
        label = TYPE_LABELS.get(field.type, field.type.value)
        return casted, error(ErrorCode.FORMAT, f"{title} is not a valid {label}", casted)

    if isinstance(casted, str):
        length = len(casted)
        if field.min_length is not None and length < field.min_length:
            return casted, error(
                ErrorCode.MIN_LENGTH,
                f"{title} must be at least {field.min_length} characters",
                casted,
            )
        if field.max_length is not None and length > field.max_length:
            return casted, error(
                ErrorCode.MAX_LENGTH,
                f"{title} must be at most {field.max_length} characters",
                casted,
            )
    elif field.type in NUMERIC_TYPES:
        if field.min_value is not None and casted < field.min_value:
            return casted, error(
                ErrorCode.RANGE, f"{title} must be at least {field.min_value}", casted
            )
        if field.max_value is not None and casted > field.max_value:
            return casted, error(
                ErrorCode.RANGE, f"{title} must be at most {field.max_value}", casted
            )

    if field.pattern and isinstance(casted, str) and casted:
        if compile_pattern(field.pattern).fullmatch(casted) is None:
            message = field.metadata.get("pattern_message") or f"{title} has an invalid format"
            return casted, error(ErrorCode.PATTERN, message, casted)

    if field.type == FieldType.ENUM and casted not in field.enum_values:
        return casted, error(
            ErrorCode.ENUM,
            f"{title} must be one of: {', '.join(field.enum_values)}",
            casted,
        )

    return casted, None


def validate_fields(
    schema: "Schema",
    data: Mapping[str, Any],
    partial: bool = False,
) -> tuple[dict[str, Any], list[FieldError]]:
    """
    Cast and validate ``data`` against ``schema``.

    Unknown keys are dropped. With ``partial=True`` only the fields
    present in ``data`` are checked, which is what an UPDATE needs.

    Returns:
        ``(casted, errors)``; a non-empty ``errors`` blocks the write
    """
    casted: dict[str, Any] = {}
    errors: list[FieldError] = []

    for field in schema.fields():
        if field.name not in data:
            if partial:
                continue
            value = None
        else:
            value = data[field.name]
        value, err = check_field(schema, field, value)
        casted[field.name] = value
        if err is not None:
            errors.append(err)

    return casted, errors
