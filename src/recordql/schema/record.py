"""
Immutable schema-bound records.
"""

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from recordql.core.errors import RecordValidationError
from recordql.core.types import ErrorCode, FieldError
from recordql.schema.casting import cast_value
from recordql.schema.validation import validate_fields

if TYPE_CHECKING:
    from recordql.schema.schema import Schema


class Record(Mapping[str, Any]):
    """
    Schema-bound data plus a per-field error map.

    A Record never changes. ``validate()``, ``with_error()`` and
    ``update()`` all return new Records.

    Field values are read by subscription (``record["email"]``). Attribute
    access also works for fields whose names do not collide with a
    method, so a field literally called ``errors`` is still reachable as
    ``record["errors"]`` while ``record.errors()`` returns the error map.
    """

    __slots__ = ("_schema", "_data", "_errors", "_validated")

    def __init__(
        self,
        schema: "Schema",
        data: Mapping[str, Any],
        errors: Mapping[str, FieldError] | None = None,
        validated: bool = False,
    ) -> None:
        object.__setattr__(self, "_schema", schema)
        object.__setattr__(self, "_data", dict(data))
        object.__setattr__(self, "_errors", dict(errors or {}))
        object.__setattr__(self, "_validated", validated)

    # =========================================================================
    # DATA ACCESS
    # =========================================================================

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._data[name]
        except KeyError:
            raise AttributeError(
                f"{self._schema.name} record has no field {name!r}"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Record is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("Record is immutable")

    def __repr__(self) -> str:
        state = "valid" if self.is_valid() else f"errors={list(self._errors)}"
        return f"<{self._schema.name} {self._data!r} {state}>"

    def data(self) -> dict[str, Any]:
        """A plain dict copy of the field values."""
        return dict(self._data)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self) -> "Record":
        """
        Validate the current values.

        Returns:
            A new Record carrying the casted values and any errors found.
            The receiver is left untouched.
        """
        casted, errors = validate_fields(self._schema, self._data, partial=True)
        return Record(
            self._schema,
            {k: casted.get(k, v) for k, v in self._data.items()},
            {e.field: e for e in errors},
            validated=True,
        )

    def update(self, changes: Mapping[str, Any]) -> "Record":
        """Merge ``changes`` into a copy and validate it."""
        merged = dict(self._data)
        for name, value in changes.items():
            field = self._schema.get_field(name)
            if field is not None:
                merged[name], _ = cast_value(field, value)
        return Record(self._schema, merged).validate()

    def with_error(
        self,
        field: str,
        message: str,
        code: ErrorCode | str = ErrorCode.CUSTOM,
    ) -> "Record":
        """
        Return a copy with one extra error merged in.

        Meant for cross-field rules a schema cannot express, e.g. a
        password confirmation check done by the caller.
        """
        errors = dict(self._errors)
        errors[field] = FieldError(
            field=field, code=code, message=message, value=self._data.get(field)
        )
        return Record(self._schema, self._data, errors, validated=self._validated)

    def is_valid(self) -> bool:
        """True when the record carries no errors."""
        return not self._errors

    @property
    def is_validated(self) -> bool:
        """True once ``validate()`` has run on this record's lineage."""
        return self._validated

    def errors(self) -> dict[str, str]:
        """Field name to error message."""
        return {name: e.message for name, e in self._errors.items()}

    def error(self, field: str) -> str | None:
        e = self._errors.get(field)
        return e.message if e else None

    def error_code(self, field: str) -> str | None:
        e = self._errors.get(field)
        return e.code if e else None

    def has_error(self, field: str) -> bool:
        return field in self._errors

    def field_errors(self) -> list[FieldError]:
        return list(self._errors.values())

    def error_list(self) -> list[dict[str, Any]]:
        """Errors in the uniform ``{error, field, value, message}`` shape."""
        return [e.to_dict() for e in self._errors.values()]

    def raise_for_errors(self) -> "Record":
        """
        Raise when the record is invalid, else return it.

        Inside ``transaction()`` this turns a validation failure into a
        rollback.

        Raises:
            RecordValidationError: If the record carries any error
        """
        if self._errors:
            raise RecordValidationError(self._schema.name, self.error_list())
        return self

    # =========================================================================
    # SCHEMA METADATA
    # =========================================================================

    @property
    def schema(self) -> "Schema":
        return self._schema

    def title(self, field: str | None = None) -> str:
        return self._schema.title(field)

    def placeholder(self, field: str) -> str | None:
        return self._schema.placeholder(field)

    def meta(self, field: str, key: str, default: Any = None) -> Any:
        return self._schema.meta(field, key, default)

    def enum_values(self, field: str) -> list[str]:
        return self._schema.enum_values(field)
