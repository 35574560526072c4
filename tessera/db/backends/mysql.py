"""
Tessera DB Backend — MySQL / MariaDB adapter via PyMySQL.

Requires pymysql:
    pip install pymysql
"""

from __future__ import annotations

import logging

from ...config import ConnectionConfig
from ...faults import DatabaseConnectionFault
from .base import AdapterCapabilities, DatabaseAdapter, qmark_to_format

logger = logging.getLogger("tessera.db.backends.mysql")

__all__ = ["MySQLAdapter"]

try:
    import pymysql
except ImportError:
    pymysql = None  # type: ignore


class MySQLAdapter(DatabaseAdapter):
    """
    MySQL / MariaDB adapter.

    The handle runs in autocommit mode; transactions are opened with
    explicit ``START TRANSACTION`` statements.
    """

    capabilities = AdapterCapabilities(
        supports_returning=False,
        supports_savepoints=True,
        param_style="format",
        name="mysql",
    )
    driver_module = "pymysql"
    begin_sql = "START TRANSACTION"

    def connect(self, config: ConnectionConfig) -> None:
        if self._connected:
            return
        if pymysql is None:
            raise self._missing_driver()
        conn_kwargs = {
            "host": config.host,
            "port": int(config.port or 3306),
            "user": config.username,
            "password": config.password,
            "database": config.database,
            "charset": config.charset,
            "autocommit": True,
        }
        conn_kwargs.update(config.options)
        try:
            self._connection = pymysql.connect(**conn_kwargs)
        except pymysql.MySQLError as exc:
            raise DatabaseConnectionFault("mysql", str(exc)) from exc
        if config.collation:
            cur = self._connection.cursor()
            try:
                cur.execute(f"SET NAMES {config.charset} COLLATE {config.collation}")
            finally:
                cur.close()
        self._config = config
        self._connected = True
        logger.info(f"MySQL connected: {config.host}:{config.port}/{config.database}")

    def adapt_sql(self, sql: str, interpolate: bool = True) -> str:
        """Convert ? placeholders to %s for pymysql."""
        return qmark_to_format(sql, interpolate)
