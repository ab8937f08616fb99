"""
Shared type definitions for recordql.
"""

import re
from collections.abc import Mapping
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class FieldType(str, Enum):
    """Supported field types."""

    INT = "int"
    BIGINT = "bigint"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    TEXT = "text"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    SLUG = "slug"
    ENUM = "enum"
    MONEY = "money"
    DATETIME = "datetime"
    DATE = "date"
    TIME = "time"
    UUID = "uuid"
    ULID = "ulid"
    JSON = "json"


# Spellings accepted for declared types. ``id`` is a pure alias for ulid.
FIELD_TYPE_ALIASES = {
    "id": FieldType.ULID,
    "integer": FieldType.INT,
    "number": FieldType.FLOAT,
    "boolean": FieldType.BOOL,
    "str": FieldType.STRING,
    "timestamp": FieldType.DATETIME,
}

INTEGER_TYPES = frozenset({FieldType.INT, FieldType.BIGINT, FieldType.MONEY})
NUMERIC_TYPES = INTEGER_TYPES | {FieldType.FLOAT}
STRING_TYPES = frozenset(
    {
        FieldType.STRING,
        FieldType.TEXT,
        FieldType.EMAIL,
        FieldType.URL,
        FieldType.PHONE,
        FieldType.SLUG,
        FieldType.ENUM,
        FieldType.UUID,
        FieldType.ULID,
    }
)


class IdStrategy(str, Enum):
    """How the identity column gets its value."""

    UUID = "uuid"
    ULID = "ulid"
    INT = "int"
    BIGINT = "bigint"


# Strategies whose value is produced client side before the INSERT.
CLIENT_GENERATED = frozenset({IdStrategy.UUID, IdStrategy.ULID})


class ErrorCode(str, Enum):
    """Per-field validation error codes."""

    REQUIRED = "REQUIRED"
    MIN_LENGTH = "MIN_LENGTH"
    MAX_LENGTH = "MAX_LENGTH"
    PATTERN = "PATTERN"
    ENUM = "ENUM"
    RANGE = "RANGE"
    FORMAT = "FORMAT"
    UNIQUE = "UNIQUE"
    CUSTOM = "CUSTOM"


class AggregateFunction(str, Enum):
    """Supported aggregation functions."""

    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


def resolve_field_type(name: str) -> FieldType:
    """
    Resolve a declared type name, honouring aliases.

    Raises:
        ValueError: If the name is not a known type
    """
    key = name.strip().lower()
    return FIELD_TYPE_ALIASES.get(key) or FieldType(key)


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile and memoize a field pattern."""
    return re.compile(pattern)


class SchemaField(BaseModel):
    """
    A single named field of a schema.

    ``min_length``/``max_length`` apply to string-like types and
    ``min_value``/``max_value`` to numeric types. Everything a renderer
    might want (title, placeholder, help, hidden, currency, ...) lives in
    the open ``metadata`` map.
    """

    name: str
    type: FieldType
    required: bool = False
    auto: bool = False
    primary: bool = False
    unique: bool = False
    default: Any = None
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    min_value: int | float | None = None
    max_value: int | float | None = None
    pattern: str | None = None
    enum_values: tuple[str, ...] = ()
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("type", mode="before")
    @classmethod
    def resolve_type_alias(cls, v: Any) -> Any:
        """Map alias spellings such as ``id`` onto their canonical type."""
        if isinstance(v, str) and not isinstance(v, FieldType):
            return resolve_field_type(v)
        return v

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str | None) -> str | None:
        """Ensure the pattern compiles."""
        if v is None:
            return v
        try:
            compile_pattern(v)
        except re.error as e:
            raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    @model_validator(mode="after")
    def check_constraints(self) -> "SchemaField":
        """Enforce cross-attribute invariants."""
        if self.type == FieldType.ENUM and not self.enum_values:
            raise ValueError("enum field requires at least one value")
        if self.enum_values and self.type != FieldType.ENUM:
            raise ValueError(f"values are only allowed on enum fields, not {self.type.value}")
        if self.auto and self.required:
            raise ValueError("a field cannot be both auto and required")
        if self.auto and self.type not in (
            FieldType.INT,
            FieldType.BIGINT,
            FieldType.UUID,
            FieldType.ULID,
        ):
            raise ValueError(f"auto is not supported for {self.type.value} fields")
        if (self.min_value is not None or self.max_value is not None) and (
            self.type not in NUMERIC_TYPES
        ):
            raise ValueError("min_value/max_value require a numeric field")
        if self.type in INTEGER_TYPES and self.type != FieldType.MONEY:
            for bound in (self.min_value, self.max_value):
                if isinstance(bound, float) and not bound.is_integer():
                    raise ValueError("integer fields take integer bounds")
        if (self.min_length is not None or self.max_length is not None) and (
            self.type not in STRING_TYPES
        ):
            raise ValueError("min_length/max_length require a string field")
        return self

    @property
    def id_strategy(self) -> IdStrategy | None:
        """Identity generation strategy implied by the field type."""
        try:
            return IdStrategy(self.type.value)
        except ValueError:
            return None

    @property
    def client_generated(self) -> bool:
        """True when an auto value is produced before the INSERT."""
        return self.auto and self.id_strategy in CLIENT_GENERATED


class FieldError(BaseModel):
    """
    A single per-field validation failure.

    The same shape is produced by in-memory validation and by translating
    a database constraint violation at write time.

    Example:
        {"error": "ENUM", "field": "role", "value": "guest",
         "message": "Role must be one of: admin, user"}
    """

    field: str
    code: str
    message: str
    value: Any = None

    model_config = {"frozen": True}

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v: Any) -> Any:
        if isinstance(v, ErrorCode):
            return v.value
        return v

    def to_dict(self) -> dict[str, Any]:
        """Uniform error shape exposed to callers."""
        return {
            "error": self.code,
            "field": self.field,
            "value": self.value,
            "message": self.message,
        }


class OrderSpec(BaseModel):
    """
    One ORDER BY term.

    Example:
        {"column": "created_at", "direction": "DESC"}
    """

    column: str
    direction: str = "ASC"

    model_config = {"frozen": True}

    @field_validator("direction", mode="before")
    @classmethod
    def upper_direction(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def reversed(self) -> "OrderSpec":
        """The same column sorted the other way."""
        flipped = "ASC" if self.direction == "DESC" else "DESC"
        return OrderSpec(column=self.column, direction=flipped)


class QueryOptions(BaseModel):
    """
    Ordering, projection and pagination for read queries.

    ``order_by`` accepts a single column name (with an optional ``order``
    key giving its direction), a list of names, or a list of
    ``[column, direction]`` pairs. ``select=None`` means every column. A
    ``limit`` of zero or less asks for no limit at all.

    Examples:
        {"orderBy": "name", "order": "desc", "limit": 10}
        {"order_by": [["status", "asc"], ["created_at", "desc"]]}
        {"select": ["id", "email"], "limit": 20, "offset": 40}
    """

    order_by: tuple[OrderSpec, ...] = Field(default=(), alias="orderBy")
    select: tuple[str, ...] | None = None
    limit: int | None = None
    offset: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True, "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def normalize_shapes(cls, data: Any) -> Any:
        """Accept the loose shapes host code passes in."""
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        direction = data.pop("order", None) or "ASC"
        key = "orderBy" if "orderBy" in data else "order_by"
        raw = data.get(key)
        if isinstance(raw, str):
            data[key] = [{"column": raw, "direction": direction}]
        elif isinstance(raw, (list, tuple)):
            specs = []
            for item in raw:
                if isinstance(item, str):
                    specs.append({"column": item, "direction": direction})
                elif isinstance(item, (list, tuple)):
                    if not item:
                        raise ValueError("empty order pair")
                    specs.append(
                        {"column": item[0], "direction": item[1] if len(item) > 1 else "ASC"}
                    )
                else:
                    specs.append(item)
            data[key] = specs
        select = data.get("select")
        if isinstance(select, str):
            data["select"] = None if select in ("*", "all") else [select]
        return data

    @classmethod
    def coerce(cls, options: "QueryOptions | Mapping[str, Any] | None") -> "QueryOptions":
        """Build options from whatever the caller passed."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(options)
