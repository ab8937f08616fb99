"""
Tests for the query compiler.
"""

import pytest

from recordql.core.dsl import (
    Aggregate,
    Assignment,
    Condition,
    ConditionGroup,
    DeleteExpression,
    InsertExpression,
    ResultShape,
    SelectExpression,
    UpdateExpression,
)
from recordql.core.errors import (
    InvalidIdentifierError,
    InvalidQueryError,
    UnconditionalMutationError,
)
from recordql.core.types import OrderSpec
from recordql.sql.compiler import QueryCompiler, conditions_from_filter
from recordql.sql.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


@pytest.fixture
def sqlite():
    return QueryCompiler(SQLiteDialect())


@pytest.fixture
def postgres():
    return QueryCompiler(PostgresDialect())


@pytest.fixture
def mysql():
    return QueryCompiler(MySQLDialect())


class TestSelect:
    """Tests for SELECT compilation."""

    def test_select_all(self, sqlite):
        query = sqlite.compile_select("users")
        assert query.sql == 'SELECT * FROM "users"'
        assert query.params == ()

    def test_where_order_limit(self, sqlite):
        query = sqlite.compile_select(
            "users",
            {"role": "admin", "active": True},
            columns=["id", "email"],
            order_by=[OrderSpec(column="email", direction="desc")],
            limit=10,
            offset=20,
        )
        assert query.sql == (
            'SELECT "id", "email" FROM "users" WHERE "role" = ? AND "active" = ? '
            'ORDER BY "email" DESC LIMIT ? OFFSET ?'
        )
        assert query.params == ("admin", 1, 10, 20)

    def test_postgres_placeholders(self, postgres):
        query = postgres.compile_select("users", {"role": "admin"}, limit=5)
        assert query.sql == 'SELECT * FROM "users" WHERE "role" = $1 LIMIT $2'
        assert query.params == ("admin", 5)

    def test_mysql_quoting(self, mysql):
        query = mysql.compile_select("users", {"role": "admin"}, offset=5)
        assert query.sql == (
            "SELECT * FROM `users` WHERE `role` = ? LIMIT 18446744073709551615 OFFSET ?"
        )

    def test_none_filter_is_null(self, sqlite):
        query = sqlite.compile_select("users", {"deleted_at": None})
        assert query.sql == 'SELECT * FROM "users" WHERE "deleted_at" IS NULL'
        assert query.params == ()

    def test_non_positive_limit_means_no_limit(self, sqlite):
        assert sqlite.compile_select("users", limit=0).sql == 'SELECT * FROM "users"'
        assert sqlite.compile_select("users", limit=-5).sql == 'SELECT * FROM "users"'

    def test_negative_offset(self, sqlite):
        with pytest.raises(InvalidQueryError):
            sqlite.compile_select("users", offset=-1)

    def test_exists(self, sqlite):
        query = sqlite.compile_exists("users", {"email": "a@b.co"})
        assert query.sql == 'SELECT 1 FROM "users" WHERE "email" = ? LIMIT 1'
        assert query.shape == ResultShape.EXISTS

    def test_aggregate(self, sqlite):
        query = sqlite.compile_aggregate("orders", "sum", "total", {"status": "pending"})
        assert query.sql == 'SELECT SUM("total") FROM "orders" WHERE "status" = ?'
        assert sqlite.compile_aggregate("orders", "count").sql == 'SELECT COUNT(*) FROM "orders"'

    def test_aggregate_needs_column(self, sqlite):
        with pytest.raises(InvalidQueryError):
            sqlite.compile_aggregate("orders", "avg")


class TestInjection:
    """Identifiers are validated, values are always bound."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda c: c.compile_select("users; DROP TABLE users"),
            lambda c: c.compile_select("users", {"email = '' OR 1=1 --": "x"}),
            lambda c: c.compile_select("users", columns=["id", "password) FROM admins --"]),
            lambda c: c.compile_select("users", order_by=[OrderSpec(column="id", direction="ASC; DROP")]),
            lambda c: c.compile_insert("users", {'email"': "x"}),
            lambda c: c.compile_update("users", {"id": 1}, {"name`": "x"}),
        ],
    )
    def test_rejected(self, sqlite, call):
        with pytest.raises(InvalidIdentifierError):
            call(sqlite)

    def test_values_are_bound(self, sqlite):
        payload = "'; DROP TABLE users; --"
        query = sqlite.compile_select("users", {"email": payload})
        assert payload not in query.sql
        assert query.params == (payload,)


class TestConditions:
    """Tests for condition rendering."""

    def compile_where(self, compiler, conditions):
        return compiler.compile_select("t", conditions)

    def test_or_folds_left(self, sqlite):
        query = self.compile_where(
            sqlite,
            [
                Condition(column="a", value=1),
                Condition(column="b", value=2, logic="or"),
                Condition(column="c", value=3),
            ],
        )
        assert query.sql == 'SELECT * FROM "t" WHERE ("a" = ? OR "b" = ?) AND "c" = ?'
        assert query.params == (1, 2, 3)

    def test_operators(self, sqlite):
        query = self.compile_where(
            sqlite,
            [
                Condition(column="a", op="!=", value=1),
                Condition(column="b", op="<", value=2),
                Condition(column="c", op="like", value="x%"),
                Condition(column="d", op="between", value=[1, 9]),
                Condition(column="e", op="is_not_null"),
                Condition(column="f", op="ne", value=None),
            ],
        )
        assert query.sql == (
            'SELECT * FROM "t" WHERE "a" <> ? AND "b" < ? AND "c" LIKE ? '
            'AND "d" BETWEEN ? AND ? AND "e" IS NOT NULL AND "f" IS NOT NULL'
        )
        assert query.params == (1, 2, "x%", 1, 9)

    def test_in_list(self, postgres):
        query = self.compile_where(postgres, [Condition(column="id", op="in", value=[1, 2, 3])])
        assert query.sql == 'SELECT * FROM "t" WHERE "id" IN ($1, $2, $3)'

    def test_empty_in(self, sqlite):
        assert self.compile_where(sqlite, [Condition(column="id", op="in", value=[])]).sql == (
            'SELECT * FROM "t" WHERE 1 = 0'
        )
        assert self.compile_where(sqlite, [Condition(column="id", op="not_in", value=[])]).sql == (
            'SELECT * FROM "t" WHERE 1 = 1'
        )

    def test_in_needs_list(self, sqlite):
        with pytest.raises(InvalidQueryError, match="needs a list"):
            self.compile_where(sqlite, [Condition(column="id", op="in", value=5)])

    def test_between_needs_pair(self, sqlite):
        with pytest.raises(InvalidQueryError, match="exactly two values"):
            self.compile_where(sqlite, [Condition(column="id", op="between", value=[1])])

    def test_negation_and_groups(self, sqlite):
        query = self.compile_where(
            sqlite,
            [
                Condition(column="a", value=1, negated=True),
                ConditionGroup(
                    conditions=[Condition(column="b", value=2), Condition(column="c", value=3, logic="or")],
                    negated=True,
                ),
            ],
        )
        assert query.sql == 'SELECT * FROM "t" WHERE NOT ("a" = ?) AND NOT (("b" = ? OR "c" = ?))'

    def test_conditions_from_filter(self):
        conditions = conditions_from_filter({"a": 1, "b": None})
        assert [(c.column, c.value) for c in conditions] == [("a", 1), ("b", None)]
        assert conditions_from_filter(None) == ()
        assert conditions_from_filter({}) == ()


class TestMutations:
    """Tests for INSERT, UPDATE and DELETE compilation."""

    def test_insert(self, sqlite):
        query = sqlite.compile_insert("users", {"email": "a@b.co", "name": "Ann"})
        assert query.sql == 'INSERT INTO "users" ("email", "name") VALUES (?, ?)'
        assert query.params == ("a@b.co", "Ann")
        assert not query.returning

    def test_insert_postgres(self, postgres):
        query = postgres.compile_insert("users", {"email": "a@b.co", "name": "Ann"})
        assert query.sql == 'INSERT INTO "users" ("email", "name") VALUES ($1, $2)'

    def test_empty_insert(self, sqlite, mysql):
        assert sqlite.compile_insert("t", {}).sql == 'INSERT INTO "t" DEFAULT VALUES'
        assert mysql.compile_insert("t", {}).sql == "INSERT INTO `t` () VALUES ()"

    def test_returning_only_when_supported(self):
        plain = QueryCompiler(SQLiteDialect(server_version=(3, 45, 0)))
        assert not plain.compile_insert("t", {"a": 1}, returning=True).returning

        enabled = QueryCompiler(SQLiteDialect(server_version=(3, 45, 0), enable_returning=True))
        query = enabled.compile_insert("t", {"a": 1}, returning=True)
        assert query.returning
        assert query.sql.endswith(" RETURNING *")

    def test_upsert(self, sqlite, mysql):
        query = sqlite.compile_insert(
            "users", {"email": "a@b.co", "name": "Ann"}, conflict_columns=["email"]
        )
        assert query.sql == (
            'INSERT INTO "users" ("email", "name") VALUES (?, ?) '
            'ON CONFLICT ("email") DO UPDATE SET "name" = excluded."name"'
        )
        query = mysql.compile_insert("users", {"email": "a@b.co", "name": "Ann"}, conflict_columns=["email"])
        assert query.sql.endswith("ON DUPLICATE KEY UPDATE `name` = VALUES(`name`)")

    def test_upsert_nothing_to_update(self, sqlite):
        query = sqlite.compile_insert("users", {"email": "a@b.co"}, conflict_columns=["email"])
        assert query.sql.endswith('ON CONFLICT ("email") DO NOTHING')

    def test_update(self, sqlite):
        query = sqlite.compile_update("users", {"id": 7}, {"name": "Bob", "age": 30})
        assert query.sql == 'UPDATE "users" SET "name" = ?, "age" = ? WHERE "id" = ?'
        assert query.params == ("Bob", 30, 7)

    def test_update_postgres_numbering(self, postgres):
        query = postgres.compile_update("users", {"id": 7}, {"name": "Bob"})
        assert query.sql == 'UPDATE "users" SET "name" = $1 WHERE "id" = $2'

    @pytest.mark.parametrize("filters", [None, {}, []])
    def test_unconditional_update_rejected(self, sqlite, filters):
        with pytest.raises(UnconditionalMutationError):
            sqlite.compile_update("users", filters, {"name": "x"})

    @pytest.mark.parametrize("filters", [None, {}, []])
    def test_unconditional_delete_rejected(self, sqlite, filters):
        with pytest.raises(UnconditionalMutationError):
            sqlite.compile_delete("users", filters)

    def test_explicit_all_forms(self, sqlite):
        assert sqlite.compile_update_all("users", {"active": False}).sql == 'UPDATE "users" SET "active" = ?'
        assert sqlite.compile_delete_all("users").sql == 'DELETE FROM "users"'

    def test_update_needs_values(self, sqlite):
        with pytest.raises(InvalidQueryError):
            sqlite.compile_update("users", {"id": 1}, {})

    def test_delete(self, mysql):
        query = mysql.compile_delete("users", {"id": 3})
        assert query.sql == "DELETE FROM `users` WHERE `id` = ?"
        assert query.params == (3,)

    def test_last_insert_id(self, postgres):
        assert postgres.compile_last_insert_id("users").sql == "SELECT lastval()"


class TestSoftDelete:
    """Tests for the soft-delete column."""

    @pytest.fixture
    def compiler(self):
        return QueryCompiler(SQLiteDialect(), soft_delete_column="deleted_at")

    def test_reads_skip_deleted(self, compiler):
        assert compiler.compile_select("users").sql == 'SELECT * FROM "users" WHERE "deleted_at" IS NULL'
        query = compiler.compile_select(
            "users", [Condition(column="a", value=1), Condition(column="b", value=2, logic="or")]
        )
        assert query.sql == 'SELECT * FROM "users" WHERE "deleted_at" IS NULL AND ("a" = ? OR "b" = ?)'

    def test_multiple_conditions_grouped(self, compiler):
        query = compiler.compile_select("users", {"a": 1, "b": 2})
        assert query.sql == 'SELECT * FROM "users" WHERE "deleted_at" IS NULL AND ("a" = ? AND "b" = ?)'

    def test_delete_marks_rows(self, compiler):
        query = compiler.compile_delete("users", {"id": 1})
        assert query.sql == (
            'UPDATE "users" SET "deleted_at" = CURRENT_TIMESTAMP '
            'WHERE "deleted_at" IS NULL AND "id" = ?'
        )


class TestExpressions:
    """Tests for compiling host expressions."""

    def test_count_terminal(self, sqlite):
        query = sqlite.compile(
            SelectExpression(table="orders", conditions=[Condition(column="status", value="pending")], terminal="count")
        )
        assert query.sql == 'SELECT COUNT(*) AS "count" FROM "orders" WHERE "status" = ?'
        assert query.shape == ResultShape.COUNT

    def test_one_terminal_limits(self, sqlite):
        query = sqlite.compile(SelectExpression(table="orders", terminal="one"))
        assert query.sql == 'SELECT * FROM "orders" LIMIT ?'
        assert query.params == (1,)

    def test_group_by_having(self, postgres):
        query = postgres.compile(
            SelectExpression(
                table="orders",
                group_by=["status"],
                aggregates=[
                    Aggregate(alias="revenue", function="sum", column="total"),
                    Aggregate(alias="n", function="count"),
                ],
                having=[Condition(column="n", op=">", value=1)],
                order_by=[OrderSpec(column="status")],
            )
        )
        assert query.sql == (
            'SELECT "status", SUM("total") AS "revenue", COUNT(*) AS "n" FROM "orders" '
            'GROUP BY "status" HAVING COUNT(*) > $1 ORDER BY "status" ASC'
        )
        assert query.params == (1,)

    def test_having_without_aggregates(self, sqlite):
        with pytest.raises(InvalidQueryError):
            sqlite.compile(
                SelectExpression(table="orders", group_by=["status"], having=[Condition(column="n", value=1)])
            )

    def test_insert_expression(self, sqlite):
        query = sqlite.compile(
            InsertExpression(table="orders", assignments=[Assignment(column="status", value="pending")])
        )
        assert query.sql == 'INSERT INTO "orders" ("status") VALUES (?)'

    def test_update_expression_requires_conditions(self, sqlite):
        with pytest.raises(UnconditionalMutationError):
            sqlite.compile(UpdateExpression(table="orders", assignments=[Assignment(column="status", value="x")]))

    def test_delete_expression(self, sqlite):
        query = sqlite.compile(
            DeleteExpression(table="orders", conditions=[Condition(column="id", op="in", value=[1, 2])])
        )
        assert query.sql == 'DELETE FROM "orders" WHERE "id" IN (?, ?)'
