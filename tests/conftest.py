"""
Shared test fixtures.
"""

import pytest
from sqlalchemy import create_engine

from recordql.binding.table import TableBinding
from recordql.schema.schema import Schema, parse_schema
from recordql.sql.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from recordql.utils.defaults import DEFAULT_DEV

# === Test Schemas ===


def user_schema() -> Schema:
    return parse_schema(
        "User",
        {
            "id": {"type": "ulid", "auto": True},
            "email": {"type": "email", "unique": True, "placeholder": "you@example.com"},
            "name": {"type": "string", "min": 2, "max": 40, "title": "Full name"},
            "role": {"type": "enum", "values": ["admin", "user"], "default": "user"},
            "age": {"type": "int", "min": 0, "max": 150, "optional": True},
            "balance": "money?",
            "active": {"type": "bool", "default": True},
            "handle": {
                "type": "string?",
                "pattern": r"[a-z_]+",
                "pattern_message": "Handle may only use lowercase letters",
            },
            "created_at": "datetime?",
        },
    )


def order_schema() -> Schema:
    return parse_schema(
        "Order",
        {
            "id": {"type": "int", "auto": True},
            "customer": {"type": "string"},
            "status": {"type": "enum", "values": ["pending", "shipped", "cancelled"]},
            "total": {"type": "money", "min": 0},
            "code": {"type": "slug", "unique": True, "optional": True},
        },
    )


USER_SCHEMA = user_schema()
ORDER_SCHEMA = order_schema()


# === Fixtures ===


@pytest.fixture
def users_schema():
    return USER_SCHEMA


@pytest.fixture
def orders_schema():
    return ORDER_SCHEMA


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine."""
    engine = create_engine("sqlite://", echo=False)
    yield engine
    engine.dispose()


@pytest.fixture
def connection(engine):
    """A borrowed connection, closed by the test harness."""
    with engine.connect() as connection:
        yield connection


@pytest.fixture
def users(connection):
    """User binding with its table created."""
    return TableBinding(USER_SCHEMA, "users", connection, defaults=DEFAULT_DEV)


@pytest.fixture
def orders(connection):
    """Order binding with its table created."""
    return TableBinding(ORDER_SCHEMA, "orders", connection, defaults=DEFAULT_DEV)


@pytest.fixture
def sqlite_dialect():
    return SQLiteDialect()


@pytest.fixture
def postgres_dialect():
    return PostgresDialect()


@pytest.fixture
def mysql_dialect():
    return MySQLDialect()


@pytest.fixture
def make_orders(orders):
    """Insert ``count`` orders and return the stored records."""

    def make(count: int, status: str = "pending", total: int = 1000) -> list:
        return [
            orders.insert({"customer": f"c{i}", "status": status, "total": total + i})
            for i in range(count)
        ]

    return make
