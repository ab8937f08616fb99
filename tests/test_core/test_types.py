"""
Tests for shared types.
"""

import pytest
from pydantic import ValidationError

from recordql.core.types import (
    ErrorCode,
    FieldError,
    FieldType,
    IdStrategy,
    OrderSpec,
    QueryOptions,
    SchemaField,
)


class TestSchemaField:
    """Tests for SchemaField invariants."""

    def test_type_alias(self):
        field = SchemaField(name="id", type="id")
        assert field.type == FieldType.ULID
        assert field.id_strategy == IdStrategy.ULID

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            SchemaField(name="x", type="blob")

    def test_enum_requires_values(self):
        with pytest.raises(ValidationError, match="at least one value"):
            SchemaField(name="role", type="enum")

    def test_values_only_on_enum(self):
        with pytest.raises(ValidationError, match="only allowed on enum"):
            SchemaField(name="name", type="string", enum_values=("a",))

    def test_auto_and_required_conflict(self):
        with pytest.raises(ValidationError, match="both auto and required"):
            SchemaField(name="id", type="int", auto=True, required=True)

    def test_auto_needs_identity_type(self):
        with pytest.raises(ValidationError, match="auto is not supported"):
            SchemaField(name="email", type="email", auto=True)

    def test_pattern_must_compile(self):
        with pytest.raises(ValidationError, match="invalid pattern"):
            SchemaField(name="code", type="string", pattern="[unclosed")

    def test_range_on_string_rejected(self):
        with pytest.raises(ValidationError):
            SchemaField(name="name", type="string", min_value=1)

    def test_length_on_int_rejected(self):
        with pytest.raises(ValidationError):
            SchemaField(name="age", type="int", max_length=3)

    def test_integer_bounds_must_be_integral(self):
        with pytest.raises(ValidationError):
            SchemaField(name="age", type="int", min_value=0.5)

    def test_client_generated(self):
        assert SchemaField(name="id", type="uuid", auto=True).client_generated
        assert not SchemaField(name="id", type="int", auto=True).client_generated
        assert not SchemaField(name="id", type="ulid").client_generated

    def test_frozen(self):
        field = SchemaField(name="name", type="string")
        with pytest.raises(ValidationError):
            field.name = "other"


class TestFieldError:
    """Tests for FieldError."""

    def test_code_normalized(self):
        error = FieldError(field="email", code=ErrorCode.UNIQUE, message="Email already exists")
        assert error.code == "UNIQUE"

    def test_to_dict_shape(self):
        error = FieldError(field="role", code="ENUM", message="Role must be one of: a", value="b")
        assert error.to_dict() == {
            "error": "ENUM",
            "field": "role",
            "value": "b",
            "message": "Role must be one of: a",
        }


class TestQueryOptions:
    """Tests for QueryOptions normalization."""

    def test_defaults(self):
        opts = QueryOptions.coerce(None)
        assert opts.order_by == ()
        assert opts.select is None
        assert opts.limit is None
        assert opts.offset is None

    def test_order_by_string_with_order(self):
        opts = QueryOptions.coerce({"orderBy": "name", "order": "desc", "limit": 5})
        assert opts.order_by == (OrderSpec(column="name", direction="DESC"),)
        assert opts.limit == 5

    def test_order_by_snake_case(self):
        opts = QueryOptions.coerce({"order_by": ["a", "b"]})
        assert [o.column for o in opts.order_by] == ["a", "b"]
        assert all(o.direction == "ASC" for o in opts.order_by)

    def test_order_by_pairs(self):
        opts = QueryOptions.coerce({"orderBy": [["status", "asc"], ["created_at", "desc"]]})
        assert opts.order_by == (
            OrderSpec(column="status", direction="ASC"),
            OrderSpec(column="created_at", direction="DESC"),
        )

    def test_select_star_means_all(self):
        assert QueryOptions.coerce({"select": "*"}).select is None
        assert QueryOptions.coerce({"select": "email"}).select == ("email",)

    def test_negative_offset_rejected(self):
        with pytest.raises(ValidationError):
            QueryOptions.coerce({"offset": -1})

    def test_coerce_passthrough(self):
        opts = QueryOptions(limit=3)
        assert QueryOptions.coerce(opts) is opts

    def test_reversed_order(self):
        assert OrderSpec(column="id").reversed() == OrderSpec(column="id", direction="DESC")
        assert OrderSpec(column="id", direction="desc").reversed().direction == "ASC"
