"""
Tessera DB — connections, query building and driver adapters.
"""

from .connection import Connection, QueryLogEntry
from .grammar import (
    Grammar,
    MySqlGrammar,
    PostgresGrammar,
    SQLiteGrammar,
    SqlServerGrammar,
    Raw,
    get_grammar,
)
from .manager import DatabaseManager
from .query import JoinClause, QueryBuilder, raw

__all__ = [
    "Connection",
    "QueryLogEntry",
    "DatabaseManager",
    "QueryBuilder",
    "JoinClause",
    "Raw",
    "raw",
    "Grammar",
    "MySqlGrammar",
    "PostgresGrammar",
    "SQLiteGrammar",
    "SqlServerGrammar",
    "get_grammar",
]
