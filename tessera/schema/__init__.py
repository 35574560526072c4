"""
Tessera Schema — blueprints, DDL grammars and migrations.
"""

from .blueprint import NO_DEFAULT, Blueprint, ColumnDefinition, Command, ForeignKeyDefinition
from .builder import Schema
from .grammar import (
    SchemaGrammar,
    MySqlSchemaGrammar,
    PostgresSchemaGrammar,
    SQLiteSchemaGrammar,
    SqlServerSchemaGrammar,
    get_schema_grammar,
)
from .migration import Migration

__all__ = [
    "NO_DEFAULT",
    "Blueprint",
    "ColumnDefinition",
    "Command",
    "ForeignKeyDefinition",
    "Schema",
    "SchemaGrammar",
    "MySqlSchemaGrammar",
    "PostgresSchemaGrammar",
    "SQLiteSchemaGrammar",
    "SqlServerSchemaGrammar",
    "get_schema_grammar",
    "Migration",
]
