"""
Tessera DB — Connection.

A ``Connection`` owns one adapter (one live driver handle) and is the
single place SQL reaches the driver. It provides:

- raw execution helpers (select, select_one, scalar, statement, insert ...)
- driver errors converted to ``QueryFault`` carrying the SQL and bindings
- savepoint-based nested transactions
- an opt-in in-memory query log
- per-dialect catalog lookups (tables, columns)

Connections are not thread-safe; use one per thread.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Sequence

from ..config import ConnectionConfig
from ..faults import DatabaseConnectionFault, Fault, QueryFault, TransactionFault
from .backends.base import DatabaseAdapter
from .grammar import Grammar, get_grammar
from .query import QueryBuilder

if TYPE_CHECKING:
    from ..schema.builder import Schema

logger = logging.getLogger("tessera.db")

__all__ = ["Connection", "QueryLogEntry"]


@dataclass
class QueryLogEntry:
    """One executed statement in the query log."""

    sql: str
    bindings: List[Any]
    time_ms: float
    timestamp: datetime = field(default_factory=datetime.now)


class Connection:
    """
    A live database connection.

    Usage:
        conn = manager.connection("sqlite")
        new_id = conn.insert("INSERT INTO widgets (name) VALUES (?)", ["Foo"])
        row = conn.select_one("SELECT * FROM widgets WHERE id = ?", [new_id])

        with conn.transaction():
            conn.table("widgets").where("id", new_id).update({"name": "Bar"})
    """

    def __init__(self, adapter: DatabaseAdapter, config: ConnectionConfig, name: str = ""):
        self._adapter = adapter
        self._config = config
        self._name = name or config.name
        self._grammar = get_grammar(config.dialect, config.prefix)
        self._transactions = 0
        self._logging_queries = bool(config.log_queries)
        self._query_log: List[QueryLogEntry] = []

    # ── Lifecycle ────────────────────────────────────────────────────

    def connect(self) -> "Connection":
        self._adapter.connect(self._config)
        return self

    def disconnect(self) -> None:
        if self._transactions:
            logger.warning(
                f"Disconnecting [{self._name}] with {self._transactions} open transaction level(s)"
            )
            self._transactions = 0
        self._adapter.disconnect()

    def reconnect(self) -> "Connection":
        self.disconnect()
        return self.connect()

    @property
    def is_connected(self) -> bool:
        return self._adapter.is_connected

    # ── Properties ───────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def driver_name(self) -> str:
        """Canonical dialect name: mysql, postgresql, sqlite or sqlserver."""
        return self._config.dialect

    @property
    def database_name(self) -> str:
        return self._config.database

    @property
    def table_prefix(self) -> str:
        return self._config.prefix

    @property
    def grammar(self) -> Grammar:
        return self._grammar

    @property
    def adapter(self) -> DatabaseAdapter:
        return self._adapter

    # ── Builders ─────────────────────────────────────────────────────

    def table(self, name: Any) -> QueryBuilder:
        """Begin a fluent query against ``name``."""
        return QueryBuilder(self, self._grammar, name)

    def query_builder(self) -> QueryBuilder:
        return QueryBuilder(self, self._grammar)

    def schema(self) -> "Schema":
        """Schema builder bound to this connection."""
        from ..schema.builder import Schema

        return Schema(self)

    # ── Execution ────────────────────────────────────────────────────

    def _run(self, sql: str, bindings: Optional[Sequence[Any]], fn: Callable[[str, List[Any]], Any]) -> Any:
        """Run one adapter call, timing it and converting driver errors."""
        bindings = list(bindings or [])
        if not self._adapter.is_connected:
            raise DatabaseConnectionFault(self.driver_name, f"Connection [{self._name}] is not open")
        started = time.perf_counter()
        try:
            result = fn(sql, bindings)
        except Fault:
            raise
        except Exception as exc:
            fault = QueryFault(str(exc), sql=sql, bindings=bindings)
            logger.log(fault.severity.log_level, f"Query failed on [{self._name}]: {exc} -- {sql}")
            raise fault from exc
        elapsed = (time.perf_counter() - started) * 1000.0
        if self._logging_queries:
            self._query_log.append(QueryLogEntry(sql=sql, bindings=bindings, time_ms=elapsed))
        return result

    def query(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> Any:
        """
        Execute ``sql`` and return the driver cursor.

        The caller owns the cursor and should close it.
        """
        return self._run(sql, bindings, self._adapter.cursor)

    def select(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return self._run(sql, bindings, self._adapter.fetch_all)

    def select_one(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        return self._run(sql, bindings, self._adapter.fetch_one)

    def scalar(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> Any:
        return self._run(sql, bindings, self._adapter.fetch_val)

    def statement(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> int:
        """Execute and return the affected row count."""
        return self._run(sql, bindings, self._adapter.execute)

    def insert(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> Any:
        """Execute an INSERT and return the backend-assigned key."""
        return self._run(sql, bindings, self._adapter.insert)

    def update(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> int:
        return self.statement(sql, bindings)

    def delete(self, sql: str, bindings: Optional[Sequence[Any]] = None) -> int:
        return self.statement(sql, bindings)

    def execute_many(self, sql: str, bindings_list: Sequence[Sequence[Any]]) -> int:
        return self._run(sql, [], lambda s, _: self._adapter.execute_many(s, bindings_list))

    # ── Transaction management ───────────────────────────────────────

    def begin_transaction(self) -> None:
        """
        Open a transaction, or a savepoint when one is already open.

        Level 0 issues BEGIN; level N issues ``SAVEPOINT trans_{N+1}``.
        """
        if self._transactions == 0:
            self._run(self._adapter.begin_sql, [], lambda s, b: self._adapter.begin())
        else:
            name = f"trans_{self._transactions + 1}"
            self._run(f"SAVEPOINT {name}", [], lambda s, b: self._adapter.savepoint(name))
        self._transactions += 1

    def commit(self) -> None:
        if self._transactions == 0:
            raise TransactionFault("commit() called with no open transaction")
        if self._transactions == 1:
            self._run(self._adapter.commit_sql, [], lambda s, b: self._adapter.commit())
        else:
            name = f"trans_{self._transactions}"
            self._run(f"RELEASE SAVEPOINT {name}", [], lambda s, b: self._adapter.release_savepoint(name))
        self._transactions -= 1

    def rollback(self) -> None:
        if self._transactions == 0:
            raise TransactionFault("rollback() called with no open transaction")
        if self._transactions == 1:
            self._run(self._adapter.rollback_sql, [], lambda s, b: self._adapter.rollback())
        else:
            name = f"trans_{self._transactions}"
            self._run(f"ROLLBACK TO SAVEPOINT {name}", [], lambda s, b: self._adapter.rollback_to_savepoint(name))
        self._transactions -= 1

    @contextmanager
    def transaction(self) -> Iterator["Connection"]:
        """
        Context manager for transactions; nests through savepoints.

        Usage:
            with conn.transaction():
                conn.table("accounts").where("id", 1).decrement("balance", 10)
                with conn.transaction():
                    ...  # rolled back alone if it raises and the error is caught
        """
        self.begin_transaction()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    def in_transaction(self) -> bool:
        return self._transactions > 0

    @property
    def transaction_level(self) -> int:
        return self._transactions

    # ── Query log ────────────────────────────────────────────────────

    def enable_query_log(self) -> None:
        self._logging_queries = True

    def disable_query_log(self) -> None:
        self._logging_queries = False

    def logging_queries(self) -> bool:
        return self._logging_queries

    def get_query_log(self) -> List[QueryLogEntry]:
        return list(self._query_log)

    def flush_query_log(self) -> None:
        self._query_log = []

    # ── Introspection ────────────────────────────────────────────────

    def get_table_info(self, table: str) -> List[Dict[str, Any]]:
        """Raw catalog rows describing the columns of ``table``."""
        sql, bindings = self._grammar.compile_table_info(table, self._config.schema)
        return self.select(sql, bindings)

    def get_tables(self) -> List[str]:
        """Table names (including any configured prefix)."""
        sql, bindings = self._grammar.compile_tables(self._config.schema)
        key = self._grammar.table_name_key
        names = []
        for row in self.select(sql, bindings):
            names.append(row[key] if key else next(iter(row.values())))
        return names

    def get_column_listing(self, table: str) -> List[str]:
        key = self._grammar.column_name_key
        return [row[key] for row in self.get_table_info(table)]

    def __repr__(self) -> str:
        return f"<Connection {self._name!r} driver={self.driver_name}>"
