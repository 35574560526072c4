"""
Tessera DB — DatabaseManager.

Holds the named connection cache. Build one from a ``DatabaseConfig`` at
startup and pass it to whatever needs database access (including the
``ModelRegistry``); there is no process-global instance.

Usage:
    config = DatabaseConfig.from_dict({
        "default": "main",
        "connections": {"main": {"driver": "sqlite", "database": "app.db"}},
    })
    db = DatabaseManager(config)
    rows = db.table("widgets").where("price", ">", 5).get()
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, ContextManager, Dict, Optional

from ..config import ConnectionConfig, DatabaseConfig
from ..faults import UnsupportedDriverFault
from .backends import DatabaseAdapter, MySQLAdapter, PostgresAdapter, SQLiteAdapter, SQLServerAdapter
from .connection import Connection
from .query import QueryBuilder

logger = logging.getLogger("tessera.db")

__all__ = ["DatabaseManager"]

AdapterFactory = Callable[[ConnectionConfig], DatabaseAdapter]


class DatabaseManager:
    """
    Lazily creates and caches one ``Connection`` per configured name.

    ``connection(name)`` returns the same instance on every call until
    ``disconnect(name)``. First-time creation is serialised with a lock so
    concurrent callers never build two handles for one name.
    """

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._default = config.default
        self._connections: Dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._factories: Dict[str, AdapterFactory] = {
            "mysql": lambda cfg: MySQLAdapter(),
            "postgresql": lambda cfg: PostgresAdapter(),
            "sqlite": lambda cfg: SQLiteAdapter(),
            "sqlserver": lambda cfg: SQLServerAdapter(),
        }

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    # ── Connections ──────────────────────────────────────────────────

    def connection(self, name: Optional[str] = None) -> Connection:
        """Return the named (or default) connection, creating it on first use."""
        name = name or self._default
        conn = self._connections.get(name)
        if conn is not None:
            return conn
        with self._lock:
            conn = self._connections.get(name)
            if conn is None:
                conn = self._make_connection(name)
                self._connections[name] = conn
        return conn

    def _make_connection(self, name: str) -> Connection:
        config = self._config.connection(name)
        factory = self._factories.get(config.dialect)
        if factory is None:
            raise UnsupportedDriverFault(config.driver, metadata={"connection": name})
        adapter = factory(config)
        logger.debug(f"Opening connection [{name}] ({config.dialect})")
        return Connection(adapter, config, name).connect()

    def disconnect(self, name: Optional[str] = None) -> None:
        """Close and forget one cached connection (no-op if never opened)."""
        name = name or self._default
        with self._lock:
            conn = self._connections.pop(name, None)
        if conn is not None:
            conn.disconnect()

    def disconnect_all(self) -> None:
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for conn in connections:
            conn.disconnect()

    def reconnect(self, name: Optional[str] = None) -> Connection:
        self.disconnect(name)
        return self.connection(name)

    def get_connections(self) -> Dict[str, Connection]:
        """Snapshot of the currently open connections."""
        return dict(self._connections)

    # ── Defaults and extension ───────────────────────────────────────

    @property
    def default_connection(self) -> str:
        return self._default

    def set_default_connection(self, name: str) -> None:
        self._config.connection(name)
        self._default = name

    def extend(self, driver: str, factory: AdapterFactory) -> None:
        """Register an adapter factory for a custom driver name."""
        self._factories[driver.lower()] = factory

    # ── Shortcuts ────────────────────────────────────────────────────

    def table(self, name: str, connection: Optional[str] = None) -> QueryBuilder:
        return self.connection(connection).table(name)

    def transaction(self, connection: Optional[str] = None) -> ContextManager[Connection]:
        return self.connection(connection).transaction()

    def begin_transaction(self, connection: Optional[str] = None) -> None:
        self.connection(connection).begin_transaction()

    def commit(self, connection: Optional[str] = None) -> None:
        self.connection(connection).commit()

    def rollback(self, connection: Optional[str] = None) -> None:
        self.connection(connection).rollback()

    def __repr__(self) -> str:
        return f"<DatabaseManager default={self._default!r} open={sorted(self._connections)}>"
