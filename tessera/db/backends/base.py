"""
Tessera DB Backend — Base Adapter Interface.

All database backends implement this interface. A ``Connection`` owns
exactly one adapter and delegates every round trip to it.

This interface abstracts the differences between SQLite, MySQL,
PostgreSQL and SQL Server drivers:
- Parameter placeholder style (? or %s)
- Transaction and savepoint statements
- How a freshly inserted key is read back
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ...config import ConnectionConfig
from ...faults import DatabaseConnectionFault, TransactionFault

logger = logging.getLogger("tessera.db.backends")

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
    "qmark_to_format",
]

# Savepoint names are interpolated into SQL
_SP_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


@dataclass
class AdapterCapabilities:
    """Describes what a specific backend supports."""

    supports_returning: bool = False
    supports_savepoints: bool = True
    supports_release_savepoint: bool = True
    param_style: str = "qmark"  # qmark (?) | format (%s)
    name: str = "base"


def qmark_to_format(sql: str, interpolate: bool = True) -> str:
    """
    Convert ``?`` placeholders to ``%s`` for format-style drivers.

    Skips ``?`` inside single-quoted strings, and ``??`` outside them
    becomes a literal ``?`` (PostgreSQL's ``?|`` / ``?&`` operators).
    With ``interpolate`` set, literal ``%`` characters are doubled because
    the driver interpolates the whole statement when parameters are
    supplied. Without it only the ``??`` escape is resolved.
    """
    result: list[str] = []
    in_string = False
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch == "'" and not in_string:
            in_string = True
            result.append(ch)
        elif ch == "'" and in_string:
            if i + 1 < len(sql) and sql[i + 1] == "'":
                result.append("''")
                i += 2
                continue
            in_string = False
            result.append(ch)
        elif ch == "%" and interpolate:
            result.append("%%")
        elif ch == "?" and not in_string:
            if sql[i + 1:i + 2] == "?":
                result.append("?")
                i += 2
                continue
            result.append("%s" if interpolate else "?")
        else:
            result.append(ch)
        i += 1
    return "".join(result)


class DatabaseAdapter(ABC):
    """
    Abstract database adapter.

    Subclasses open the driver handle and hand out cursors; row shaping,
    insert-id capture and transaction statements live here.
    """

    capabilities: AdapterCapabilities = AdapterCapabilities()
    driver_module: str = ""

    def __init__(self):
        self._connection: Any = None
        self._connected = False
        self._config: Optional[ConnectionConfig] = None

    # ── Lifecycle ────────────────────────────────────────────────────

    @abstractmethod
    def connect(self, config: ConnectionConfig) -> None:
        """Open the driver handle described by ``config``."""
        ...

    def disconnect(self) -> None:
        """Close the driver handle."""
        if not self._connected:
            return
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._connected = False
        logger.info(f"{self.dialect} disconnected")

    def _missing_driver(self) -> DatabaseConnectionFault:
        return DatabaseConnectionFault(
            self.dialect,
            f"{self.driver_module} is required for the {self.dialect} backend. "
            f"Install: pip install {self.driver_module}",
        )

    def _require_connection(self) -> Any:
        if not self._connected or self._connection is None:
            raise DatabaseConnectionFault(self.dialect, "Not connected")
        return self._connection

    # ── Statement execution ──────────────────────────────────────────

    def cursor(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Execute ``sql`` and return the live driver cursor."""
        conn = self._require_connection()
        params = list(params or [])
        adapted = self.adapt_sql(sql, interpolate=bool(params))
        cur = conn.cursor()
        if params:
            cur.execute(adapted, self.adapt_params(params))
        else:
            cur.execute(adapted)
        return cur

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Execute a statement and return the affected row count."""
        cur = self.cursor(sql, params)
        try:
            return cur.rowcount
        finally:
            cur.close()

    def execute_many(self, sql: str, params_list: Sequence[Sequence[Any]]) -> int:
        conn = self._require_connection()
        cur = conn.cursor()
        try:
            cur.executemany(self.adapt_sql(sql), [self.adapt_params(p) for p in params_list])
            return cur.rowcount
        finally:
            cur.close()

    def fetch_all(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        cur = self.cursor(sql, params)
        try:
            rows = cur.fetchall()
            return [self._row_to_dict(cur, row) for row in rows]
        finally:
            cur.close()

    def fetch_one(self, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        cur = self.cursor(sql, params)
        try:
            row = cur.fetchone()
            if row is None:
                return None
            return self._row_to_dict(cur, row)
        finally:
            cur.close()

    def fetch_val(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        cur = self.cursor(sql, params)
        try:
            row = cur.fetchone()
            if row is None:
                return None
            if isinstance(row, dict):
                return next(iter(row.values()))
            return row[0]
        finally:
            cur.close()

    def insert(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """
        Execute an INSERT and return the backend-assigned key.

        Statements compiled with RETURNING / OUTPUT produce a result row,
        which wins over ``cursor.lastrowid``.
        """
        cur = self.cursor(sql, params)
        try:
            if cur.description:
                row = cur.fetchone()
                if row is not None:
                    return next(iter(row.values())) if isinstance(row, dict) else row[0]
            return self.last_insert_id(cur)
        finally:
            cur.close()

    def last_insert_id(self, cursor: Any) -> Optional[int]:
        """Extract last inserted ID from cursor."""
        return getattr(cursor, "lastrowid", None)

    @staticmethod
    def _row_to_dict(cursor: Any, row: Any) -> Dict[str, Any]:
        if isinstance(row, dict):
            return dict(row)
        if hasattr(row, "keys"):
            return {key: row[key] for key in row.keys()}
        cols = [d[0] for d in cursor.description]
        return dict(zip(cols, row))

    # ── Transaction management ───────────────────────────────────────

    begin_sql = "BEGIN"
    commit_sql = "COMMIT"
    rollback_sql = "ROLLBACK"

    def begin(self) -> None:
        self.execute(self.begin_sql)

    def commit(self) -> None:
        self.execute(self.commit_sql)

    def rollback(self) -> None:
        self.execute(self.rollback_sql)

    def savepoint(self, name: str) -> None:
        self.execute(f"SAVEPOINT {self._savepoint_name(name)}")

    def release_savepoint(self, name: str) -> None:
        self.execute(f"RELEASE SAVEPOINT {self._savepoint_name(name)}")

    def rollback_to_savepoint(self, name: str) -> None:
        self.execute(f"ROLLBACK TO SAVEPOINT {self._savepoint_name(name)}")

    @staticmethod
    def _savepoint_name(name: str) -> str:
        if not _SP_NAME_RE.match(name):
            raise TransactionFault(f"Invalid savepoint name: {name!r}")
        return name

    # ── SQL adaptation ───────────────────────────────────────────────

    def adapt_sql(self, sql: str, interpolate: bool = True) -> str:
        """
        Adapt SQL placeholders from qmark (?) to the backend's param style.

        ``interpolate`` is False when the statement runs without parameters.
        Override this in backends that use a different param style.
        """
        return sql

    def adapt_params(self, params: Sequence[Any]) -> Sequence[Any]:
        return tuple(params)

    # ── Introspection of the handle ──────────────────────────────────

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def dialect(self) -> str:
        return self.capabilities.name

    @property
    def raw_connection(self) -> Any:
        """The underlying DB-API connection object."""
        return self._connection
