"""
Tessera DB Backends Package — pluggable database adapters.

Provides a common adapter interface and implementations for:
- SQLite (embedded, via sqlite3)
- MySQL / MariaDB (via pymysql)
- PostgreSQL (via psycopg2)
- SQL Server (via pymssql)
"""

from .base import DatabaseAdapter, AdapterCapabilities, qmark_to_format
from .sqlite import SQLiteAdapter
from .mysql import MySQLAdapter
from .postgres import PostgresAdapter
from .sqlserver import SQLServerAdapter

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
    "qmark_to_format",
    "SQLiteAdapter",
    "MySQLAdapter",
    "PostgresAdapter",
    "SQLServerAdapter",
]
