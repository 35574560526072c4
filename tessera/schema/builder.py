"""
Tessera Schema — Schema builder.

Runs blueprint DDL against a connection and answers catalog questions.

Usage:
    schema = conn.schema()

    def widgets(table):
        table.id()
        table.string("name")
        table.decimal("price", 8, 2).nullable()

    schema.create("widgets", widgets)
    schema.has_column("widgets", "price")   # True
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List, Sequence

from .blueprint import Blueprint
from .grammar import SchemaGrammar, get_schema_grammar

if TYPE_CHECKING:
    from ..db.connection import Connection

logger = logging.getLogger("tessera.schema")

__all__ = ["Schema"]


class Schema:
    """DDL entry point bound to one ``Connection``."""

    def __init__(self, connection: "Connection"):
        self.connection = connection
        self.grammar: SchemaGrammar = get_schema_grammar(connection.driver_name, connection.table_prefix)

    # ── Blueprint execution ──────────────────────────────────────────

    def create(self, table: str, callback: Callable[[Blueprint], None]) -> Blueprint:
        """CREATE TABLE built by ``callback``."""
        blueprint = self._blueprint(table, "create")
        callback(blueprint)
        self.build(blueprint)
        return blueprint

    def table(self, table: str, callback: Callable[[Blueprint], None]) -> Blueprint:
        """ALTER TABLE built by ``callback``; each change is its own statement."""
        blueprint = self._blueprint(table, "alter")
        callback(blueprint)
        self.build(blueprint)
        return blueprint

    def build(self, blueprint: Blueprint) -> None:
        for sql in self.to_sql(blueprint):
            logger.debug(f"DDL [{self.connection.name}]: {sql}")
            self.connection.statement(sql)

    def to_sql(self, blueprint: Blueprint) -> List[str]:
        """Statements a blueprint compiles to, without executing them."""
        if blueprint.creating():
            return self.grammar.compile_create(blueprint, self.connection.config)
        return self.grammar.compile_alter(blueprint)

    def _blueprint(self, table: str, action: str) -> Blueprint:
        return Blueprint(table, action, prefix=self.connection.table_prefix)

    # ── Table statements ─────────────────────────────────────────────

    def drop(self, table: str) -> None:
        self.connection.statement(self.grammar.compile_drop(table))

    def drop_if_exists(self, table: str) -> None:
        self.connection.statement(self.grammar.compile_drop_if_exists(table))

    def rename(self, old: str, new: str) -> None:
        self.connection.statement(self.grammar.compile_rename(old, new))

    # ── Catalog ──────────────────────────────────────────────────────

    def has_table(self, table: str) -> bool:
        return (self.connection.table_prefix + table) in self.connection.get_tables()

    def get_column_listing(self, table: str) -> List[str]:
        return self.connection.get_column_listing(table)

    def has_column(self, table: str, column: str) -> bool:
        return column.lower() in (c.lower() for c in self.get_column_listing(table))

    def has_columns(self, table: str, columns: Sequence[str]) -> bool:
        existing = {c.lower() for c in self.get_column_listing(table)}
        return all(c.lower() in existing for c in columns)
