"""
Shared test fixtures for the Tessera test suite.

Everything runs against in-memory SQLite; the other dialects are covered
by compiling SQL without a server.
"""

import pytest

from tessera.config import DatabaseConfig
from tessera.db.manager import DatabaseManager
from tessera.models import ModelRegistry


SQLITE_MEMORY = {"driver": "sqlite", "database": ":memory:"}


def make_manager(**extra_connections) -> DatabaseManager:
    """Manager whose default connection ``sqlite`` is in-memory SQLite."""
    connections = {"sqlite": dict(SQLITE_MEMORY)}
    connections.update(extra_connections)
    return DatabaseManager(DatabaseConfig.from_dict({"default": "sqlite", "connections": connections}))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db():
    manager = make_manager()
    yield manager
    manager.disconnect_all()


@pytest.fixture
def conn(db):
    return db.connection()


@pytest.fixture
def schema(conn):
    return conn.schema()


@pytest.fixture
def registry(db):
    return ModelRegistry(db)


# ============================================================================
# Table Fixtures
# ============================================================================


@pytest.fixture
def widgets(schema):
    """``widgets(id, name, price)`` table; yields the connection's table name."""
    def build(table):
        table.id()
        table.string("name")
        table.decimal("price", 8, 2).nullable()

    schema.create("widgets", build)
    return "widgets"


@pytest.fixture
def seeded_widgets(conn, widgets):
    """25 widgets named widget-1 .. widget-25 priced 1.0 .. 25.0."""
    conn.table(widgets).insert([
        {"name": f"widget-{i}", "price": float(i)} for i in range(1, 26)
    ])
    return widgets
