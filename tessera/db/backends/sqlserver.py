"""
Tessera DB Backend — SQL Server adapter via pymssql.

Requires pymssql:
    pip install pymssql
"""

from __future__ import annotations

import logging

from ...config import ConnectionConfig
from ...faults import DatabaseConnectionFault
from .base import AdapterCapabilities, DatabaseAdapter, qmark_to_format

logger = logging.getLogger("tessera.db.backends.sqlserver")

__all__ = ["SQLServerAdapter"]

try:
    import pymssql
except ImportError:
    pymssql = None  # type: ignore


class SQLServerAdapter(DatabaseAdapter):
    """
    SQL Server adapter.

    SQL Server spells savepoints ``SAVE TRANSACTION`` and has no release
    statement; a released savepoint simply stays until the outer commit.
    """

    capabilities = AdapterCapabilities(
        supports_returning=True,
        supports_savepoints=True,
        supports_release_savepoint=False,
        param_style="format",
        name="sqlserver",
    )
    driver_module = "pymssql"
    begin_sql = "BEGIN TRANSACTION"
    commit_sql = "COMMIT TRANSACTION"
    rollback_sql = "ROLLBACK TRANSACTION"

    def connect(self, config: ConnectionConfig) -> None:
        if self._connected:
            return
        if pymssql is None:
            raise self._missing_driver()
        conn_kwargs = {
            "server": config.host,
            "port": str(config.port or 1433),
            "user": config.username,
            "password": config.password,
            "database": config.database,
            "autocommit": True,
        }
        conn_kwargs.update(config.options)
        try:
            self._connection = pymssql.connect(**conn_kwargs)
        except pymssql.Error as exc:
            raise DatabaseConnectionFault("sqlserver", str(exc)) from exc
        self._config = config
        self._connected = True
        logger.info(f"SQL Server connected: {config.host}:{config.port}/{config.database}")

    def adapt_sql(self, sql: str, interpolate: bool = True) -> str:
        """Convert ? placeholders to %s for pymssql."""
        return qmark_to_format(sql, interpolate)

    def savepoint(self, name: str) -> None:
        self.execute(f"SAVE TRANSACTION {self._savepoint_name(name)}")

    def release_savepoint(self, name: str) -> None:
        self._savepoint_name(name)

    def rollback_to_savepoint(self, name: str) -> None:
        self.execute(f"ROLLBACK TRANSACTION {self._savepoint_name(name)}")
