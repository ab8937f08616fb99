"""
Tests for CREATE TABLE generation.
"""

from recordql.core.types import SchemaField
from recordql.sql.ddl import build_create_table_sql, column_definition, sql_literal
from recordql.sql.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


class TestSqlLiteral:
    """Tests for DDL literals."""

    def test_literals(self, sqlite_dialect, postgres_dialect):
        assert sql_literal("O'Brien", sqlite_dialect) == "'O''Brien'"
        assert sql_literal(True, sqlite_dialect) == "1"
        assert sql_literal(True, postgres_dialect) == "TRUE"
        assert sql_literal(5, sqlite_dialect) == "5"
        assert sql_literal(object(), sqlite_dialect) is None


class TestColumnDefinition:
    """Tests for single columns."""

    def test_identity_columns(self):
        auto_int = SchemaField(name="id", type="int", auto=True)
        assert column_definition(auto_int, SQLiteDialect(), identity=True) == '"id" INTEGER PRIMARY KEY'
        assert column_definition(auto_int, PostgresDialect(), identity=True) == '"id" SERIAL PRIMARY KEY'
        assert column_definition(auto_int, MySQLDialect(), identity=True) == (
            "`id` INT AUTO_INCREMENT PRIMARY KEY"
        )
        ulid = SchemaField(name="id", type="ulid", auto=True)
        assert column_definition(ulid, SQLiteDialect(), identity=True) == '"id" TEXT PRIMARY KEY'
        assert column_definition(ulid, MySQLDialect(), identity=True) == "`id` CHAR(26) PRIMARY KEY"

    def test_manual_int_identity(self):
        field = SchemaField(name="id", type="bigint")
        assert column_definition(field, PostgresDialect(), identity=True) == '"id" BIGINT PRIMARY KEY'

    def test_constraints(self, sqlite_dialect):
        field = SchemaField(name="age", type="int", required=True, min_value=0, max_value=150)
        assert column_definition(field, sqlite_dialect) == (
            '"age" INTEGER NOT NULL CHECK ("age" >= 0 AND "age" <= 150)'
        )

    def test_unique_default_enum(self, postgres_dialect):
        field = SchemaField(
            name="role", type="enum", enum_values=("admin", "user"), default="user", unique=True
        )
        assert column_definition(field, postgres_dialect) == (
            "\"role\" TEXT UNIQUE DEFAULT 'user' CHECK (\"role\" IN ('admin', 'user'))"
        )

    def test_mysql_length_check(self, mysql_dialect):
        field = SchemaField(name="name", type="string", min_length=2, max_length=40)
        assert column_definition(field, mysql_dialect) == (
            "`name` VARCHAR(40) CHECK (CHAR_LENGTH(`name`) >= 2 AND CHAR_LENGTH(`name`) <= 40)"
        )

    def test_money_bounds_and_default_in_cents(self, sqlite_dialect):
        field = SchemaField(
            name="price", type="money", required=True, min_value=0.5, max_value=100, default="9.99"
        )
        assert column_definition(field, sqlite_dialect) == (
            '"price" INTEGER NOT NULL DEFAULT 999 CHECK ("price" >= 50 AND "price" <= 10000)'
        )

    def test_callable_default_skipped(self, sqlite_dialect):
        field = SchemaField(name="n", type="int", default=lambda: 1)
        assert column_definition(field, sqlite_dialect) == '"n" INTEGER'


class TestCreateTable:
    """Tests for full statements."""

    def test_orders_sqlite(self, orders_schema, sqlite_dialect):
        sql = build_create_table_sql(orders_schema, "orders", sqlite_dialect)
        assert sql == (
            'CREATE TABLE IF NOT EXISTS "orders" (\n'
            '  "id" INTEGER PRIMARY KEY,\n'
            '  "customer" TEXT NOT NULL,\n'
            "  \"status\" TEXT NOT NULL CHECK (\"status\" IN ('pending', 'shipped', 'cancelled')),\n"
            '  "total" INTEGER NOT NULL CHECK ("total" >= 0),\n'
            '  "code" TEXT UNIQUE\n'
            ")"
        )

    def test_postgres_types(self, users_schema, postgres_dialect):
        sql = build_create_table_sql(users_schema, "users", postgres_dialect)
        assert '"id" TEXT PRIMARY KEY' in sql
        assert '"balance" BIGINT' in sql
        assert '"active" BOOLEAN NOT NULL DEFAULT TRUE' in sql
        assert '"created_at" TIMESTAMP' in sql

    def test_soft_delete_column_added(self, orders_schema, postgres_dialect):
        sql = build_create_table_sql(orders_schema, "orders", postgres_dialect, soft_delete_column="deleted_at")
        assert sql.endswith('  "deleted_at" TIMESTAMP\n)')
