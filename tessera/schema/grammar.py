"""
Tessera Schema — DDL grammars.

Compiles a ``Blueprint`` into a list of statements for one dialect:

- create: a single ``CREATE TABLE`` (columns, then inline constraints,
  then the MySQL table options), followed by ``CREATE INDEX`` statements
  on dialects without inline index syntax
- alter: one statement per added column and one per command
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from ..db.grammar import Grammar, MySqlGrammar, PostgresGrammar, Raw, SQLiteGrammar, SqlServerGrammar
from ..faults import SchemaFault
from .blueprint import NO_DEFAULT, Blueprint, ColumnDefinition, Command, ForeignKeyDefinition

__all__ = [
    "SchemaGrammar",
    "MySqlSchemaGrammar",
    "PostgresSchemaGrammar",
    "SQLiteSchemaGrammar",
    "SqlServerSchemaGrammar",
    "get_schema_grammar",
]


class SchemaGrammar:
    """Base DDL grammar. Subclasses provide the type map and dialect quirks."""

    dialect = "base"
    query_grammar_class = Grammar

    # column type -> callable(column) -> SQL type
    type_map: Dict[str, Callable[[ColumnDefinition], str]] = {}

    def __init__(self, table_prefix: str = ""):
        self.table_prefix = table_prefix
        self.query_grammar = self.query_grammar_class(table_prefix)

    # ── Helpers ──────────────────────────────────────────────────────

    def wrap(self, value: Any) -> str:
        return self.query_grammar.wrap(value)

    def wrap_table(self, table: str) -> str:
        return self.query_grammar.wrap_table(table)

    def columnize(self, columns: List[str]) -> str:
        return self.query_grammar.columnize(columns)

    def format_default(self, value: Any) -> str:
        """Format a Python value as a SQL DEFAULT literal."""
        if isinstance(value, Raw):
            return value.sql
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def column_type(self, column: ColumnDefinition) -> str:
        try:
            return self.type_map[column.type](column)
        except KeyError:
            raise SchemaFault(column.name, f"Column type '{column.type}' is not supported by {self.dialect}") from None

    def is_identity(self, column: ColumnDefinition) -> bool:
        return column.is_auto_increment and column.type in ("integer", "big_integer")

    def compile_column(self, column: ColumnDefinition) -> str:
        parts = [self.wrap(column.name), self.column_type(column)]
        parts.extend(self.column_modifiers(column))
        return " ".join(p for p in parts if p)

    def column_modifiers(self, column: ColumnDefinition) -> List[str]:
        parts = ["NULL" if column.is_nullable else "NOT NULL"]
        if column.default_value is not NO_DEFAULT:
            parts.append(f"DEFAULT {self.format_default(column.default_value)}")
        return parts

    def _enum_check(self, column: ColumnDefinition) -> str:
        allowed = ", ".join(self.format_default(v) for v in column.allowed)
        return f"CHECK ({self.wrap(column.name)} IN ({allowed}))"

    # ── CREATE ───────────────────────────────────────────────────────

    def compile_create(self, blueprint: Blueprint, connection_config: Any = None) -> List[str]:
        definitions = [self.compile_column(c) for c in blueprint.columns]
        trailing: List[str] = []
        for command in blueprint.commands:
            if command.name == "primary":
                if any(c.is_primary and self.is_identity(c) for c in blueprint.columns):
                    continue
                definitions.append(f"PRIMARY KEY ({self.columnize(command.columns)})")
            elif command.name == "unique":
                definitions.append(self.inline_unique(command))
            elif command.name == "index":
                inline = self.inline_index(command)
                if inline:
                    definitions.append(inline)
                else:
                    trailing.append(self.compile_index(blueprint, command))
            elif command.name == "foreign":
                definitions.append(self.compile_foreign_clause(command))
            else:
                raise SchemaFault(blueprint.table, f"'{command.name}' cannot be used while creating a table")

        body = ",\n  ".join(definitions)
        sql = f"CREATE TABLE {self.wrap_table(blueprint.table)} (\n  {body}\n)"
        sql += self.table_options(blueprint, connection_config)
        return [sql] + trailing

    def table_options(self, blueprint: Blueprint, connection_config: Any) -> str:
        return ""

    def inline_unique(self, command: Command) -> str:
        return f"CONSTRAINT {self.wrap(command.index)} UNIQUE ({self.columnize(command.columns)})"

    def inline_index(self, command: Command) -> Optional[str]:
        return None

    def compile_foreign_clause(self, command: ForeignKeyDefinition) -> str:
        if not command.on_table or not command.references_columns:
            raise SchemaFault(
                command.index or "?",
                "Foreign key needs references(...) and on(...)",
            )
        sql = (
            f"CONSTRAINT {self.wrap(command.index)} FOREIGN KEY ({self.columnize(command.columns)}) "
            f"REFERENCES {self.wrap_table(command.on_table)} ({self.columnize(command.references_columns)})"
        )
        if command.on_delete_action:
            sql += f" ON DELETE {command.on_delete_action}"
        if command.on_update_action:
            sql += f" ON UPDATE {command.on_update_action}"
        return sql

    # ── ALTER ────────────────────────────────────────────────────────

    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        statements = [self.compile_add_column(blueprint, c) for c in blueprint.columns]
        for command in blueprint.commands:
            method = getattr(self, f"compile_{command.name}", None)
            if method is None:
                raise SchemaFault(blueprint.table, f"Unknown schema command '{command.name}'")
            result = method(blueprint, command)
            statements.extend(result if isinstance(result, list) else [result])
        return statements

    def compile_add_column(self, blueprint: Blueprint, column: ColumnDefinition) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD COLUMN {self.compile_column(column)}"

    def compile_primary(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD CONSTRAINT {self.wrap(command.index)} "
            f"PRIMARY KEY ({self.columnize(command.columns)})"
        )

    def compile_unique(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD CONSTRAINT {self.wrap(command.index)} "
            f"UNIQUE ({self.columnize(command.columns)})"
        )

    def compile_index(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"CREATE INDEX {self.wrap(command.index)} ON {self.wrap_table(blueprint.table)} "
            f"({self.columnize(command.columns)})"
        )

    def compile_foreign(self, blueprint: Blueprint, command: ForeignKeyDefinition) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD {self.compile_foreign_clause(command)}"

    def compile_drop_column(self, blueprint: Blueprint, command: Command) -> List[str]:
        table = self.wrap_table(blueprint.table)
        return [f"ALTER TABLE {table} DROP COLUMN {self.wrap(c)}" for c in command.columns]

    def compile_rename_column(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} RENAME COLUMN "
            f"{self.wrap(command.columns[0])} TO {self.wrap(command.options['to'])}"
        )

    def compile_drop_index(self, blueprint: Blueprint, command: Command) -> str:
        return f"DROP INDEX {self.wrap(command.index)}"

    def compile_drop_unique(self, blueprint: Blueprint, command: Command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP CONSTRAINT {self.wrap(command.index)}"

    def compile_drop_foreign(self, blueprint: Blueprint, command: Command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP CONSTRAINT {self.wrap(command.index)}"

    # ── Table-level statements ───────────────────────────────────────

    def compile_drop(self, table: str) -> str:
        return f"DROP TABLE {self.wrap_table(table)}"

    def compile_drop_if_exists(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.wrap_table(table)}"

    def compile_rename(self, old: str, new: str) -> str:
        return f"ALTER TABLE {self.wrap_table(old)} RENAME TO {self.wrap_table(new)}"


class MySqlSchemaGrammar(SchemaGrammar):
    dialect = "mysql"
    query_grammar_class = MySqlGrammar

    type_map = {
        "string": lambda c: f"VARCHAR({c.length})",
        "char": lambda c: f"CHAR({c.length})",
        "text": lambda c: "TEXT",
        "medium_text": lambda c: "MEDIUMTEXT",
        "long_text": lambda c: "LONGTEXT",
        "integer": lambda c: "INT",
        "big_integer": lambda c: "BIGINT",
        "small_integer": lambda c: "SMALLINT",
        "tiny_integer": lambda c: "TINYINT",
        "boolean": lambda c: "TINYINT(1)",
        "decimal": lambda c: f"DECIMAL({c.precision}, {c.scale})",
        "float": lambda c: f"FLOAT({c.precision}, {c.scale})",
        "double": lambda c: "DOUBLE",
        "date": lambda c: "DATE",
        "date_time": lambda c: "DATETIME",
        "time": lambda c: "TIME",
        "timestamp": lambda c: "TIMESTAMP",
        "json": lambda c: "JSON",
        "enum": lambda c: "ENUM(" + ", ".join("'" + v.replace("'", "''") + "'" for v in c.allowed) + ")",
        "uuid": lambda c: "CHAR(36)",
        "binary": lambda c: "BLOB",
    }

    def column_type(self, column: ColumnDefinition) -> str:
        sql = super().column_type(column)
        if column.is_unsigned and column.type in (
            "integer", "big_integer", "small_integer", "tiny_integer", "decimal", "float", "double",
        ):
            sql += " UNSIGNED"
        return sql

    def column_modifiers(self, column: ColumnDefinition) -> List[str]:
        parts = super().column_modifiers(column)
        if self.is_identity(column):
            parts.append("AUTO_INCREMENT")
            if column.is_primary:
                parts.append("PRIMARY KEY")
        if column.comment_text is not None:
            parts.append(f"COMMENT {self.format_default(column.comment_text)}")
        return parts

    def table_options(self, blueprint: Blueprint, connection_config: Any) -> str:
        engine = blueprint.engine or getattr(connection_config, "engine", None) or "InnoDB"
        charset = blueprint.charset or getattr(connection_config, "charset", None) or "utf8mb4"
        collation = blueprint.collation or getattr(connection_config, "collation", None)
        sql = f" ENGINE={engine} DEFAULT CHARSET={charset}"
        if collation:
            sql += f" COLLATE={collation}"
        return sql

    def inline_unique(self, command: Command) -> str:
        return f"UNIQUE KEY {self.wrap(command.index)} ({self.columnize(command.columns)})"

    def inline_index(self, command: Command) -> Optional[str]:
        return f"KEY {self.wrap(command.index)} ({self.columnize(command.columns)})"

    def compile_add_column(self, blueprint: Blueprint, column: ColumnDefinition) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD {self.compile_column(column)}"

    def compile_primary(self, blueprint: Blueprint, command: Command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD PRIMARY KEY ({self.columnize(command.columns)})"

    def compile_unique(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD UNIQUE KEY {self.wrap(command.index)} "
            f"({self.columnize(command.columns)})"
        )

    def compile_index(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD INDEX {self.wrap(command.index)} "
            f"({self.columnize(command.columns)})"
        )

    def compile_drop_index(self, blueprint: Blueprint, command: Command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP INDEX {self.wrap(command.index)}"

    def compile_drop_unique(self, blueprint: Blueprint, command: Command) -> str:
        return self.compile_drop_index(blueprint, command)

    def compile_drop_foreign(self, blueprint: Blueprint, command: Command) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} DROP FOREIGN KEY {self.wrap(command.index)}"

    def compile_rename(self, old: str, new: str) -> str:
        return f"RENAME TABLE {self.wrap_table(old)} TO {self.wrap_table(new)}"


class PostgresSchemaGrammar(SchemaGrammar):
    dialect = "postgresql"
    query_grammar_class = PostgresGrammar

    type_map = {
        "string": lambda c: f"VARCHAR({c.length})",
        "char": lambda c: f"CHAR({c.length})",
        "text": lambda c: "TEXT",
        "medium_text": lambda c: "TEXT",
        "long_text": lambda c: "TEXT",
        "integer": lambda c: "SERIAL" if c.is_auto_increment else "INTEGER",
        "big_integer": lambda c: "BIGSERIAL" if c.is_auto_increment else "BIGINT",
        "small_integer": lambda c: "SMALLINT",
        "tiny_integer": lambda c: "SMALLINT",
        "boolean": lambda c: "BOOLEAN",
        "decimal": lambda c: f"DECIMAL({c.precision}, {c.scale})",
        "float": lambda c: "DOUBLE PRECISION",
        "double": lambda c: "DOUBLE PRECISION",
        "date": lambda c: "DATE",
        "date_time": lambda c: "TIMESTAMP(0) WITHOUT TIME ZONE",
        "time": lambda c: "TIME(0) WITHOUT TIME ZONE",
        "timestamp": lambda c: "TIMESTAMP(0) WITHOUT TIME ZONE",
        "json": lambda c: "JSON",
        "enum": lambda c: "VARCHAR(255)",
        "uuid": lambda c: "UUID",
        "binary": lambda c: "BYTEA",
    }

    def format_default(self, value: Any) -> str:
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        return super().format_default(value)

    def column_modifiers(self, column: ColumnDefinition) -> List[str]:
        if self.is_identity(column):
            return ["PRIMARY KEY"] if column.is_primary else ["NOT NULL"]
        parts = super().column_modifiers(column)
        if column.type == "enum":
            parts.append(self._enum_check(column))
        return parts

    def compile_create(self, blueprint: Blueprint, connection_config: Any = None) -> List[str]:
        statements = super().compile_create(blueprint, connection_config)
        return statements + self._comments(blueprint)

    def compile_alter(self, blueprint: Blueprint) -> List[str]:
        return super().compile_alter(blueprint) + self._comments(blueprint)

    def _comments(self, blueprint: Blueprint) -> List[str]:
        return [
            f"COMMENT ON COLUMN {self.wrap_table(blueprint.table)}.{self.wrap(c.name)} "
            f"IS {self.format_default(c.comment_text)}"
            for c in blueprint.columns
            if c.comment_text is not None
        ]

    def compile_drop_index(self, blueprint: Blueprint, command: Command) -> str:
        return f"DROP INDEX {self.wrap(command.index)}"


class SQLiteSchemaGrammar(SchemaGrammar):
    dialect = "sqlite"
    query_grammar_class = SQLiteGrammar

    type_map = {
        "string": lambda c: f"VARCHAR({c.length})",
        "char": lambda c: f"CHAR({c.length})",
        "text": lambda c: "TEXT",
        "medium_text": lambda c: "TEXT",
        "long_text": lambda c: "TEXT",
        "integer": lambda c: "INTEGER",
        "big_integer": lambda c: "INTEGER",
        "small_integer": lambda c: "INTEGER",
        "tiny_integer": lambda c: "INTEGER",
        "boolean": lambda c: "TINYINT(1)",
        "decimal": lambda c: f"NUMERIC({c.precision}, {c.scale})",
        "float": lambda c: "FLOAT",
        "double": lambda c: "FLOAT",
        "date": lambda c: "DATE",
        "date_time": lambda c: "DATETIME",
        "time": lambda c: "TIME",
        "timestamp": lambda c: "DATETIME",
        "json": lambda c: "TEXT",
        "enum": lambda c: "VARCHAR(255)",
        "uuid": lambda c: "VARCHAR(36)",
        "binary": lambda c: "BLOB",
    }

    def column_modifiers(self, column: ColumnDefinition) -> List[str]:
        if self.is_identity(column):
            # Only INTEGER PRIMARY KEY columns alias the rowid
            return ["PRIMARY KEY AUTOINCREMENT"]
        parts = super().column_modifiers(column)
        if column.type == "enum":
            parts.append(self._enum_check(column))
        return parts

    def compile_primary(self, blueprint: Blueprint, command: Command) -> str:
        raise SchemaFault(blueprint.table, "SQLite cannot add a primary key to an existing table")

    def compile_foreign(self, blueprint: Blueprint, command: ForeignKeyDefinition) -> str:
        raise SchemaFault(blueprint.table, "SQLite cannot add a foreign key to an existing table")

    def compile_unique(self, blueprint: Blueprint, command: Command) -> str:
        return (
            f"CREATE UNIQUE INDEX {self.wrap(command.index)} ON {self.wrap_table(blueprint.table)} "
            f"({self.columnize(command.columns)})"
        )

    def compile_drop_unique(self, blueprint: Blueprint, command: Command) -> str:
        return f"DROP INDEX {self.wrap(command.index)}"

    def compile_drop_foreign(self, blueprint: Blueprint, command: Command) -> str:
        raise SchemaFault(blueprint.table, "SQLite cannot drop a foreign key from an existing table")


class SqlServerSchemaGrammar(SchemaGrammar):
    dialect = "sqlserver"
    query_grammar_class = SqlServerGrammar

    type_map = {
        "string": lambda c: f"NVARCHAR({c.length})",
        "char": lambda c: f"NCHAR({c.length})",
        "text": lambda c: "NVARCHAR(MAX)",
        "medium_text": lambda c: "NVARCHAR(MAX)",
        "long_text": lambda c: "NVARCHAR(MAX)",
        "integer": lambda c: "INT",
        "big_integer": lambda c: "BIGINT",
        "small_integer": lambda c: "SMALLINT",
        "tiny_integer": lambda c: "TINYINT",
        "boolean": lambda c: "BIT",
        "decimal": lambda c: f"DECIMAL({c.precision}, {c.scale})",
        "float": lambda c: "FLOAT",
        "double": lambda c: "FLOAT",
        "date": lambda c: "DATE",
        "date_time": lambda c: "DATETIME2(0)",
        "time": lambda c: "TIME(0)",
        "timestamp": lambda c: "DATETIME2(0)",
        "json": lambda c: "NVARCHAR(MAX)",
        "enum": lambda c: "NVARCHAR(255)",
        "uuid": lambda c: "UNIQUEIDENTIFIER",
        "binary": lambda c: "VARBINARY(MAX)",
    }

    def column_modifiers(self, column: ColumnDefinition) -> List[str]:
        if self.is_identity(column):
            parts = ["IDENTITY(1,1)", "NOT NULL"]
            if column.is_primary:
                parts.append("PRIMARY KEY")
            return parts
        parts = super().column_modifiers(column)
        if column.type == "enum":
            parts.append(self._enum_check(column))
        return parts

    def compile_add_column(self, blueprint: Blueprint, column: ColumnDefinition) -> str:
        return f"ALTER TABLE {self.wrap_table(blueprint.table)} ADD {self.compile_column(column)}"

    def compile_drop_index(self, blueprint: Blueprint, command: Command) -> str:
        return f"DROP INDEX {self.wrap(command.index)} ON {self.wrap_table(blueprint.table)}"

    def compile_rename_column(self, blueprint: Blueprint, command: Command) -> str:
        source = f"{self.table_prefix}{blueprint.table}.{command.columns[0]}"
        return f"EXEC sp_rename {self.format_default(source)}, {self.format_default(command.options['to'])}, 'COLUMN'"

    def compile_drop_if_exists(self, table: str) -> str:
        name = self.format_default(self.table_prefix + table)
        return f"IF OBJECT_ID({name}, 'U') IS NOT NULL DROP TABLE {self.wrap_table(table)}"

    def compile_rename(self, old: str, new: str) -> str:
        return (
            f"EXEC sp_rename {self.format_default(self.table_prefix + old)}, "
            f"{self.format_default(self.table_prefix + new)}"
        )


_SCHEMA_GRAMMARS = {
    "mysql": MySqlSchemaGrammar,
    "postgresql": PostgresSchemaGrammar,
    "sqlite": SQLiteSchemaGrammar,
    "sqlserver": SqlServerSchemaGrammar,
}


def get_schema_grammar(dialect: str, table_prefix: str = "") -> SchemaGrammar:
    try:
        return _SCHEMA_GRAMMARS[dialect](table_prefix)
    except KeyError:
        raise SchemaFault("*", f"No schema grammar for dialect '{dialect}'") from None
