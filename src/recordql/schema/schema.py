"""
Schemas: ordered, uniquely named field definitions.

A Schema is built once and never changes afterwards, so it can be shared
freely between threads and bindings.
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from recordql.core.dsl import Condition, ConditionGroup
from recordql.core.errors import SchemaDefinitionError
from recordql.core.identifiers import is_valid_identifier
from recordql.core.types import (
    FieldType,
    NUMERIC_TYPES,
    STRING_TYPES,
    SchemaField,
    resolve_field_type,
)
from recordql.schema.casting import cast_value, decode_value, encode_value

if TYPE_CHECKING:
    from recordql.schema.record import Record
    from recordql.schema.table import Table

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Attributes of a declarative field spec. Everything else is metadata.
_FIELD_KEYS = frozenset(
    {
        "type",
        "required",
        "optional",
        "auto",
        "primary",
        "unique",
        "default",
        "min",
        "max",
        "min_length",
        "max_length",
        "min_value",
        "max_value",
        "pattern",
        "values",
        "enum",
    }
)


def humanize(name: str) -> str:
    """``first_name`` / ``firstName`` -> ``First Name``."""
    words = _CAMEL_BOUNDARY.sub(" ", name).replace("_", " ").split()
    return " ".join(w[:1].upper() + w[1:] for w in words)


def _pydantic_message(exc: ValidationError) -> str:
    first = exc.errors()[0]
    msg = first.get("msg", str(exc))
    # pydantic prefixes messages raised from validators
    return msg.removeprefix("Value error, ")


class Schema:
    """
    An ordered set of fields with an optional identity field.

    The identity is the field flagged ``primary``, or failing that the
    field named ``id``.

    Calling a schema with a data map builds an unvalidated Record:

        user = UserSchema({"email": "a@b.co", "role": "admin"})
        checked = user.validate()
    """

    def __init__(
        self,
        name: str,
        fields: Iterable[SchemaField | Mapping[str, Any]],
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Build a schema.

        Args:
            name: Schema name (used for titles and error messages)
            fields: Field definitions in declaration order
            metadata: Optional schema-level metadata (title, ...)

        Raises:
            SchemaDefinitionError: If any field or the field set is invalid
        """
        self.name = name
        self.metadata = MappingProxyType(dict(metadata or {}))

        built: list[SchemaField] = []
        for item in fields:
            if isinstance(item, SchemaField):
                built.append(item)
                continue
            try:
                built.append(SchemaField.model_validate(item))
            except ValidationError as e:
                raise SchemaDefinitionError(
                    _pydantic_message(e), schema=name, field=item.get("name")
                ) from e

        by_name: dict[str, SchemaField] = {}
        for field in built:
            if not is_valid_identifier(field.name):
                raise SchemaDefinitionError(
                    "field name is not a valid identifier", schema=name, field=field.name
                )
            if field.name in by_name:
                raise SchemaDefinitionError("duplicate field", schema=name, field=field.name)
            by_name[field.name] = field

        primaries = [f for f in built if f.primary]
        if len(primaries) > 1:
            raise SchemaDefinitionError(
                f"more than one primary field: {', '.join(f.name for f in primaries)}",
                schema=name,
            )
        identity = primaries[0] if primaries else by_name.get("id")
        if identity is not None and identity.id_strategy is None:
            raise SchemaDefinitionError(
                f"identity must be uuid, ulid, int or bigint, not {identity.type.value}",
                schema=name,
                field=identity.name,
            )

        self._fields = tuple(built)
        self._by_name = MappingProxyType(by_name)
        self._identity = identity

    def __repr__(self) -> str:
        return f"Schema({self.name!r}, fields={list(self._by_name)})"

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[SchemaField]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def fields(self) -> tuple[SchemaField, ...]:
        """All fields in declaration order."""
        return self._fields

    def field_names(self) -> list[str]:
        return list(self._by_name)

    def get_field(self, name: str) -> SchemaField | None:
        return self._by_name.get(name)

    def visible_fields(self) -> list[SchemaField]:
        """Fields meant for forms: excludes auto fields and hidden ones."""
        return [f for f in self._fields if not f.auto and not f.metadata.get("hidden")]

    @property
    def identity(self) -> SchemaField | None:
        """The identity field, if the schema has one."""
        return self._identity

    @property
    def identity_column(self) -> str:
        """Identity column name; ``id`` by convention when none is declared."""
        return self._identity.name if self._identity else "id"

    def title(self, field: str | None = None) -> str:
        """
        Display title for the schema, or for one of its fields.

        Uses the ``title`` metadata entry when present, else the humanized
        name.
        """
        if field is None:
            return self.metadata.get("title") or humanize(self.name)
        definition = self._by_name.get(field)
        if definition is not None and definition.metadata.get("title"):
            return definition.metadata["title"]
        return humanize(field)

    def placeholder(self, field: str) -> str | None:
        return self.meta(field, "placeholder")

    def meta(self, field: str, key: str, default: Any = None) -> Any:
        """Read one metadata entry of a field."""
        definition = self._by_name.get(field)
        if definition is None:
            return default
        return definition.metadata.get(key, default)

    def enum_values(self, field: str) -> list[str]:
        definition = self._by_name.get(field)
        return list(definition.enum_values) if definition else []

    # =========================================================================
    # RECORD CONSTRUCTION
    # =========================================================================

    def __call__(self, data: Mapping[str, Any] | None = None) -> "Record":
        """
        Build an unvalidated Record.

        Unknown keys are dropped, known keys are cast, and missing keys
        take the field default (or None).
        """
        from recordql.schema.record import Record

        data = data or {}
        values: dict[str, Any] = {}
        for field in self._fields:
            if field.name in data:
                values[field.name], _ = cast_value(field, data[field.name])
            elif field.default is not None:
                default = field.default() if callable(field.default) else field.default
                values[field.name], _ = cast_value(field, default)
            else:
                values[field.name] = None
        return Record(self, values)

    def validate(self, data: Mapping[str, Any]) -> "Record":
        """Shorthand for ``schema(data).validate()``."""
        return self(data).validate()

    def from_row(self, row: Mapping[str, Any]) -> "Record":
        """
        Build a Record from a database row.

        Only the columns present in the row are kept, so projected reads
        do not grow default-valued fields.
        """
        from recordql.schema.record import Record

        values: dict[str, Any] = {}
        for field in self._fields:
            if field.name in row:
                values[field.name], _ = decode_value(field, row[field.name])
        return Record(self, values)

    def to_row(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """
        Column values for casted field values.

        The inverse of ``from_row``. Keys that are not fields pass through.
        """
        row = {}
        for name, value in values.items():
            field = self._by_name.get(name)
            row[name] = encode_value(field, value) if field is not None else value
        return row

    def encode_filters(self, filters: Any) -> Any:
        """
        Filters with money values converted to column values.

        Accepts a filter map or a sequence of conditions and groups and
        returns the same shape.
        """
        if not filters:
            return filters
        if isinstance(filters, Mapping):
            return self.to_row(filters)
        return tuple(self._encode_condition(node) for node in filters)

    def _encode_condition(self, node: Condition | ConditionGroup) -> Condition | ConditionGroup:
        if isinstance(node, ConditionGroup):
            return node.model_copy(
                update={"conditions": tuple(self._encode_condition(c) for c in node.conditions)}
            )
        field = self._by_name.get(node.column)
        if field is None or field.type != FieldType.MONEY or node.value is None:
            return node
        if isinstance(node.value, (list, tuple, set, frozenset)):
            value: Any = [encode_value(field, v) for v in node.value]
        else:
            value = encode_value(field, node.value)
        return node.model_copy(update={"value": value})

    def table(self, rows: Iterable[Mapping[str, Any]]) -> "Table":
        """Build a Table of unvalidated Records from plain rows."""
        from recordql.schema.table import Table

        return Table(self, [self(row) for row in rows])


def parse_schema(
    name: str,
    spec: Mapping[str, str | Mapping[str, Any]],
    metadata: Mapping[str, Any] | None = None,
) -> Schema:
    """
    Build a Schema from a compact declarative mapping.

    A field spec is either a type name or a mapping. A trailing ``?`` on
    the type makes the field optional; fields are required otherwise
    (auto fields never are). ``min``/``max`` mean length on string types
    and range on numeric types. Unrecognized keys become metadata.

    Example:
        parse_schema("User", {
            "id": {"type": "ulid", "auto": True},
            "email": {"type": "email", "unique": True},
            "name": {"type": "string", "min": 2, "max": 80, "title": "Full name"},
            "role": {"type": "enum", "values": ["admin", "user"], "default": "user"},
            "bio": "text?",
        })

    Raises:
        SchemaDefinitionError: On unknown types or violated invariants
    """
    fields: list[SchemaField] = []
    for field_name, raw in spec.items():
        options: dict[str, Any] = {"type": raw} if isinstance(raw, str) else dict(raw)
        type_name = options.get("type")
        if not isinstance(type_name, str):
            raise SchemaDefinitionError("field type is missing", schema=name, field=field_name)

        optional = type_name.endswith("?") or bool(options.get("optional"))
        type_name = type_name.rstrip("?")
        try:
            field_type = resolve_field_type(type_name)
        except ValueError as e:
            raise SchemaDefinitionError(
                f"unknown type {type_name!r}", schema=name, field=field_name
            ) from e

        auto = bool(options.get("auto", False))
        required = options.get("required", not optional and not auto)

        attrs: dict[str, Any] = {
            "name": field_name,
            "type": field_type,
            "required": required,
            "auto": auto,
            "primary": bool(options.get("primary", False)),
            "unique": bool(options.get("unique", False)),
            "default": options.get("default"),
            "pattern": options.get("pattern"),
            "enum_values": tuple(options.get("values") or options.get("enum") or ()),
            "metadata": {k: v for k, v in options.items() if k not in _FIELD_KEYS},
        }
        for key in ("min_length", "max_length", "min_value", "max_value"):
            if key in options:
                attrs[key] = options[key]

        for bound in ("min", "max"):
            if bound not in options:
                continue
            if field_type in STRING_TYPES:
                attrs[f"{bound}_length"] = options[bound]
            elif field_type in NUMERIC_TYPES:
                attrs[f"{bound}_value"] = options[bound]
            else:
                raise SchemaDefinitionError(
                    f"{bound} is not supported for {field_type.value} fields",
                    schema=name,
                    field=field_name,
                )

        try:
            fields.append(SchemaField(**attrs))
        except ValidationError as e:
            raise SchemaDefinitionError(
                _pydantic_message(e), schema=name, field=field_name
            ) from e

    return Schema(name, fields, metadata=metadata)
