"""
Tests for TableBinding.execute with host expressions.
"""

import pytest

from recordql.core.dsl import (
    Aggregate,
    Assignment,
    Condition,
    DeleteExpression,
    InsertExpression,
    SelectExpression,
    UpdateExpression,
)
from recordql.core.errors import InvalidQueryError, UnconditionalMutationError
from recordql.core.types import OrderSpec
from recordql.schema.record import Record
from recordql.schema.table import Table


def assign(**values):
    return [Assignment(column=k, value=v) for k, v in values.items()]


class TestSelectExpressions:
    """Tests for select terminals."""

    def test_many(self, orders, make_orders):
        make_orders(3)
        result = orders.execute(
            SelectExpression(
                table="orders",
                conditions=[Condition(column="total", op=">=", value=1001)],
                order_by=[OrderSpec(column="total", direction="DESC")],
            )
        )
        assert isinstance(result, Table)
        assert [r["total"] for r in result] == [1002, 1001]

    def test_one(self, orders, make_orders):
        make_orders(3)
        result = orders.execute(
            SelectExpression(table="orders", conditions=[Condition(column="customer", value="c1")], terminal="one")
        )
        assert isinstance(result, Record)
        assert result["customer"] == "c1"
        missing = orders.execute(
            SelectExpression(table="orders", conditions=[Condition(column="customer", value="zz")], terminal="one")
        )
        assert missing is None

    def test_count_and_exists(self, orders, make_orders):
        make_orders(4)
        assert orders.execute(SelectExpression(table="orders", terminal="count")) == 4
        assert orders.execute(
            SelectExpression(
                table="orders", conditions=[Condition(column="status", value="shipped")], terminal="exists"
            )
        ) is False

    def test_or_and_in(self, orders, make_orders):
        make_orders(5)
        result = orders.execute(
            SelectExpression(
                table="orders",
                conditions=[
                    Condition(column="customer", op="in", value=["c0", "c1"]),
                    Condition(column="total", value=1004, logic="or"),
                ],
                order_by=[OrderSpec(column="id")],
            )
        )
        assert [r["customer"] for r in result] == ["c0", "c1", "c4"]

    def test_grouped_rows_are_dicts(self, orders, make_orders):
        make_orders(3, total=100)
        make_orders(2, status="shipped", total=10)
        rows = orders.execute(
            SelectExpression(
                table="orders",
                group_by=["status"],
                aggregates=[
                    Aggregate(alias="n", function="count"),
                    Aggregate(alias="revenue", function="sum", column="total"),
                ],
                having=[Condition(column="n", op=">=", value=1)],
                order_by=[OrderSpec(column="status")],
            )
        )
        # Grouped rows carry raw column values, so money sums are in cents
        assert rows == [
            {"status": "pending", "n": 3, "revenue": 30300},
            {"status": "shipped", "n": 2, "revenue": 2100},
        ]

    def test_table_mismatch(self, orders):
        with pytest.raises(InvalidQueryError, match="binding is for 'orders'"):
            orders.execute(SelectExpression(table="users"))


class TestMutationExpressions:
    """Tests for insert, update and delete expressions."""

    def test_insert_one(self, orders):
        record = orders.execute(
            InsertExpression(table="orders", assignments=assign(customer="a", status="pending", total=5))
        )
        assert isinstance(record, Record)
        assert record["id"] == 1

    def test_insert_many_and_count_terminals(self, orders):
        table = orders.execute(
            InsertExpression(
                table="orders", assignments=assign(customer="a", status="pending", total=5), terminal="many"
            )
        )
        assert isinstance(table, Table)
        assert len(table) == 1
        count = orders.execute(
            InsertExpression(
                table="orders", assignments=assign(customer="b", status="pending", total=5), terminal="count"
            )
        )
        assert count == 1
        assert orders.execute(
            InsertExpression(
                table="orders", assignments=assign(customer="c", status="pending", total=5), terminal="execute"
            )
        ) is None
        assert orders.count() == 3

    def test_insert_validation(self, orders):
        result = orders.execute(
            InsertExpression(table="orders", assignments=assign(customer="a", status="bogus", total=5))
        )
        assert result.error_code("status") == "ENUM"
        assert orders.count() == 0

    def test_upsert(self, orders):
        orders.insert({"customer": "a", "status": "pending", "total": 5, "code": "k1"})
        record = orders.execute(
            InsertExpression(
                table="orders",
                assignments=assign(customer="b", status="shipped", total=7, code="k1"),
                conflict_columns=["code"],
            )
        )
        assert record["customer"] == "b"
        assert record["status"] == "shipped"
        assert orders.count() == 1

    def test_update_returns_rows(self, orders, make_orders):
        make_orders(3)
        result = orders.execute(
            UpdateExpression(
                table="orders",
                conditions=[Condition(column="total", op="<", value=1002)],
                assignments=assign(status="shipped"),
                terminal="many",
            )
        )
        assert isinstance(result, Table)
        assert sorted(r["customer"] for r in result) == ["c0", "c1"]
        assert all(r["status"] == "shipped" for r in result)

    def test_update_count(self, orders, make_orders):
        make_orders(3)
        count = orders.execute(
            UpdateExpression(
                table="orders",
                conditions=[Condition(column="status", value="pending")],
                assignments=assign(status="cancelled"),
            )
        )
        assert count == 3

    def test_update_without_conditions(self, orders):
        with pytest.raises(UnconditionalMutationError):
            orders.execute(UpdateExpression(table="orders", assignments=assign(status="shipped")))

    def test_delete_returns_removed_row(self, orders, make_orders):
        make_orders(2)
        record = orders.execute(
            DeleteExpression(
                table="orders", conditions=[Condition(column="customer", value="c0")], terminal="one"
            )
        )
        assert record["customer"] == "c0"
        assert orders.count() == 1

    def test_delete_without_conditions(self, orders):
        with pytest.raises(UnconditionalMutationError):
            orders.execute(DeleteExpression(table="orders"))
