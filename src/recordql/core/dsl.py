"""
Query expression models for recordql.

These Pydantic models are the resolved expression tree handed over by the
host evaluator: a table reference, ordered conditions whose values are
already evaluated, ordered assignments and a terminal marker that selects
the shape of the result. Nothing here parses source text.
"""

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from recordql.core.types import AggregateFunction, OrderSpec


class ConditionOp(str, Enum):
    """Supported condition operators."""

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LTE = "lte"
    GT = "gt"
    GTE = "gte"
    IN = "in"
    NOT_IN = "not_in"
    LIKE = "like"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    BETWEEN = "between"


# Host spellings of the comparison operators.
OPERATOR_ALIASES = {
    "==": ConditionOp.EQ,
    "=": ConditionOp.EQ,
    "!=": ConditionOp.NE,
    "<>": ConditionOp.NE,
    "<": ConditionOp.LT,
    "<=": ConditionOp.LTE,
    ">": ConditionOp.GT,
    ">=": ConditionOp.GTE,
    "not in": ConditionOp.NOT_IN,
    "is null": ConditionOp.IS_NULL,
    "is not null": ConditionOp.IS_NOT_NULL,
}


class ResultShape(str, Enum):
    """Terminal marker selecting the result shape."""

    ONE = "one"  # single Record or None
    MANY = "many"  # Table of Records
    COUNT = "count"  # row count (select) or affected rows (mutation)
    EXISTS = "exists"  # boolean
    EXECUTE = "execute"  # run for effect, returns None


class Condition(BaseModel):
    """
    A single filter condition.

    ``logic`` says how the condition joins the conditions before it.

    Examples:
        {"column": "status", "op": "eq", "value": "active"}
        {"column": "age", "op": ">=", "value": 18, "logic": "or"}
        {"column": "id", "op": "in", "value": [1, 2, 3]}
        {"column": "price", "op": "between", "value": [10, 20]}
    """

    column: str
    op: ConditionOp = ConditionOp.EQ
    value: Any = None
    logic: Literal["and", "or"] = "and"
    negated: bool = False

    model_config = {"frozen": True}

    @field_validator("op", mode="before")
    @classmethod
    def resolve_operator(cls, v: Any) -> Any:
        if isinstance(v, str) and not isinstance(v, ConditionOp):
            key = v.strip().lower()
            return OPERATOR_ALIASES.get(key, key)
        return v

    @field_validator("logic", mode="before")
    @classmethod
    def lower_logic(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class ConditionGroup(BaseModel):
    """
    A parenthesized group of conditions.

    Example:
        {"conditions": [{"column": "a", "value": 1},
                        {"column": "b", "value": 2, "logic": "or"}],
         "logic": "and", "negated": true}
    """

    conditions: tuple[Union[Condition, "ConditionGroup"], ...]
    logic: Literal["and", "or"] = "and"
    negated: bool = False

    model_config = {"frozen": True}


ConditionGroup.model_rebuild()

ConditionNode = Union[Condition, ConditionGroup]


class Assignment(BaseModel):
    """A ``column = value`` pair for INSERT and UPDATE."""

    column: str
    value: Any = None

    model_config = {"frozen": True}


class Aggregate(BaseModel):
    """
    A computed column in a grouped select.

    Example:
        {"alias": "total", "function": "sum", "column": "amount"}
    """

    alias: str
    function: AggregateFunction
    column: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_column(self) -> "Aggregate":
        if self.column is None and self.function != AggregateFunction.COUNT:
            raise ValueError(f"{self.function.value} requires a column")
        return self


class SelectExpression(BaseModel):
    """
    A read query.

    ``having`` conditions reference aggregate aliases. A ``ONE`` terminal
    implies ``LIMIT 1`` when no limit is given.
    """

    table: str
    conditions: tuple[ConditionNode, ...] = ()
    columns: tuple[str, ...] | None = None
    order_by: tuple[OrderSpec, ...] = ()
    limit: int | None = None
    offset: int | None = Field(default=None, ge=0)
    group_by: tuple[str, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()
    having: tuple[ConditionNode, ...] = ()
    terminal: ResultShape = ResultShape.MANY

    model_config = {"frozen": True}


class InsertExpression(BaseModel):
    """
    An INSERT.

    When ``conflict_columns`` is set the insert becomes an upsert that
    overwrites the assigned columns of the conflicting row.
    """

    table: str
    assignments: tuple[Assignment, ...]
    conflict_columns: tuple[str, ...] = ()
    terminal: ResultShape = ResultShape.ONE

    model_config = {"frozen": True}


class UpdateExpression(BaseModel):
    """An UPDATE. Empty ``conditions`` are refused at compile time."""

    table: str
    conditions: tuple[ConditionNode, ...] = ()
    assignments: tuple[Assignment, ...]
    terminal: ResultShape = ResultShape.COUNT

    model_config = {"frozen": True}


class DeleteExpression(BaseModel):
    """A DELETE. Empty ``conditions`` are refused at compile time."""

    table: str
    conditions: tuple[ConditionNode, ...] = ()
    terminal: ResultShape = ResultShape.COUNT

    model_config = {"frozen": True}


Expression = Union[SelectExpression, InsertExpression, UpdateExpression, DeleteExpression]
