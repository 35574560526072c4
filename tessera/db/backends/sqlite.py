"""
Tessera DB Backend — SQLite adapter via the standard library sqlite3 module.

The embedded backend, used by the test suite through ``:memory:``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Sequence

from ...config import ConnectionConfig
from .base import AdapterCapabilities, DatabaseAdapter

logger = logging.getLogger("tessera.db.backends.sqlite")

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite adapter.

    Features:
    - Autocommit handle with explicit BEGIN/COMMIT
    - WAL journal mode for file databases
    - Foreign key enforcement (``foreign_keys`` config flag)
    - Savepoint-based nested transactions
    """

    capabilities = AdapterCapabilities(
        supports_returning=False,
        supports_savepoints=True,
        param_style="qmark",
        name="sqlite",
    )
    driver_module = "sqlite3"

    def connect(self, config: ConnectionConfig) -> None:
        if self._connected:
            return
        db_path = self._parse_database(config.database)
        # isolation_level=None: no implicit transactions, BEGIN is explicit
        self._connection = sqlite3.connect(
            db_path,
            isolation_level=None,
            check_same_thread=config.options.get("check_same_thread", True),
        )
        self._connection.row_factory = sqlite3.Row
        if db_path != ":memory:":
            self._connection.execute("PRAGMA journal_mode=WAL")
        if config.foreign_keys:
            self._connection.execute("PRAGMA foreign_keys=ON")
        self._config = config
        self._connected = True
        logger.info(f"SQLite connected: {db_path}")

    def adapt_params(self, params: Sequence[Any]) -> Sequence[Any]:
        return tuple(_adapt_value(value) for value in params)

    @staticmethod
    def _parse_database(database: str) -> str:
        """Accept a bare path, ``:memory:`` or a ``sqlite:///`` URL."""
        for prefix in ("sqlite:///", "sqlite://"):
            if database.startswith(prefix):
                return database[len(prefix):] or ":memory:"
        return database or ":memory:"


def _adapt_value(value: Any) -> Any:
    # sqlite3 has no native date or decimal types
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value
