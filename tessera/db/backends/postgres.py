"""
Tessera DB Backend — PostgreSQL adapter via psycopg2.

Requires psycopg2:
    pip install psycopg2-binary
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...config import ConnectionConfig
from ...faults import DatabaseConnectionFault
from .base import AdapterCapabilities, DatabaseAdapter, qmark_to_format

logger = logging.getLogger("tessera.db.backends.postgres")

__all__ = ["PostgresAdapter"]

try:
    import psycopg2
except ImportError:
    psycopg2 = None  # type: ignore


class PostgresAdapter(DatabaseAdapter):
    """
    PostgreSQL adapter.

    Features:
    - Autocommit handle with explicit BEGIN/COMMIT
    - ``search_path`` set from the ``schema`` config value
    - Insert keys read back through ``RETURNING``
    - Savepoint support
    """

    capabilities = AdapterCapabilities(
        supports_returning=True,
        supports_savepoints=True,
        param_style="format",
        name="postgresql",
    )
    driver_module = "psycopg2"

    def connect(self, config: ConnectionConfig) -> None:
        if self._connected:
            return
        if psycopg2 is None:
            raise self._missing_driver()
        conn_kwargs = {
            "host": config.host,
            "port": int(config.port or 5432),
            "user": config.username,
            "password": config.password,
            "dbname": config.database,
        }
        conn_kwargs.update(config.options)
        try:
            self._connection = psycopg2.connect(**conn_kwargs)
        except psycopg2.Error as exc:
            raise DatabaseConnectionFault("postgresql", str(exc)) from exc
        self._connection.autocommit = True
        if config.charset and config.charset.lower().startswith("utf8"):
            self._connection.set_client_encoding("UTF8")
        if config.schema and config.schema != "public":
            cur = self._connection.cursor()
            try:
                cur.execute(f'SET search_path TO "{config.schema}"')
            finally:
                cur.close()
        self._config = config
        self._connected = True
        logger.info(f"PostgreSQL connected: {config.host}:{config.port}/{config.database}")

    def adapt_sql(self, sql: str, interpolate: bool = True) -> str:
        """Convert ? placeholders to %s for psycopg2."""
        return qmark_to_format(sql, interpolate)

    def last_insert_id(self, cursor: Any) -> Optional[int]:
        # psycopg2 reports the row OID here, never the serial value
        return None
