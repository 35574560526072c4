"""
Tessera DB — Query grammars.

A grammar turns a ``QueryBuilder``'s fragment lists into dialect SQL.
Builders always render ``?`` placeholders; the adapter translates them to
the driver's param style afterwards.

Dialect differences handled here:
- Identifier quoting (backticks, double quotes, brackets)
- LIMIT / OFFSET versus TOP / OFFSET ... FETCH
- Reading back an inserted key (RETURNING, OUTPUT INSERTED)
- Catalog queries for table and column introspection
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from ..faults import QueryFault

if TYPE_CHECKING:
    from .query import QueryBuilder

__all__ = [
    "Raw",
    "Grammar",
    "MySqlGrammar",
    "PostgresGrammar",
    "SQLiteGrammar",
    "SqlServerGrammar",
    "get_grammar",
]


class Raw:
    """A verbatim SQL expression, optionally carrying its own bindings."""

    __slots__ = ("sql", "bindings")

    def __init__(self, sql: str, bindings: Sequence[Any] = ()):
        self.sql = sql
        self.bindings = list(bindings)

    def __str__(self) -> str:
        return self.sql

    def __repr__(self) -> str:
        return f"Raw({self.sql!r})"

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, Raw) and other.sql == self.sql and other.bindings == self.bindings

    def __hash__(self) -> int:
        return hash(self.sql)


class Grammar:
    """Base grammar; renders ANSI-flavoured SQL with double-quoted identifiers."""

    dialect = "base"
    quote_open = '"'
    quote_close = '"'

    operators = (
        "=", "<", ">", "<=", ">=", "<>", "!=",
        "like", "not like", "in", "not in",
        "&", "|", "^", "<<", ">>",
    )

    def __init__(self, table_prefix: str = ""):
        self.table_prefix = table_prefix

    # ── Identifiers ──────────────────────────────────────────────────

    def wrap_value(self, value: str) -> str:
        if value == "*":
            return value
        escaped = value.replace(self.quote_close, self.quote_close * 2)
        return f"{self.quote_open}{escaped}{self.quote_close}"

    def wrap_table(self, table: Any) -> str:
        if isinstance(table, Raw):
            return table.sql
        table = str(table)
        lowered = table.lower()
        if " as " in lowered:
            idx = lowered.index(" as ")
            return f"{self.wrap_table(table[:idx].strip())} AS {self.wrap_value(table[idx + 4:].strip())}"
        parts = table.split(".")
        parts[-1] = self.table_prefix + parts[-1]
        return ".".join(self.wrap_value(p) for p in parts)

    def wrap(self, value: Any) -> str:
        """Quote a column reference such as ``name``, ``posts.id`` or ``count as n``."""
        if isinstance(value, Raw):
            return value.sql
        value = str(value)
        lowered = value.lower()
        if " as " in lowered:
            idx = lowered.index(" as ")
            return f"{self.wrap(value[:idx].strip())} AS {self.wrap_value(value[idx + 4:].strip())}"
        segments = value.split(".")
        if len(segments) == 1:
            return self.wrap_value(segments[0])
        table = self.wrap_table(".".join(segments[:-1]))
        return f"{table}.{self.wrap_value(segments[-1])}"

    def columnize(self, columns: Sequence[Any]) -> str:
        return ", ".join(self.wrap(c) for c in columns)

    def parameter(self, value: Any) -> str:
        return value.sql if isinstance(value, Raw) else "?"

    def parameterize(self, values: Sequence[Any]) -> str:
        return ", ".join(self.parameter(v) for v in values)

    def check_operator(self, operator: str) -> str:
        op = str(operator).lower().strip()
        if op not in self.operators:
            raise QueryFault(f"Invalid operator '{operator}'", operation="where")
        return op

    # ── SELECT ───────────────────────────────────────────────────────

    def compile_select(self, query: "QueryBuilder") -> str:
        if query._aggregate is not None and (query._groups or query._distinct):
            return self._compile_aggregate_subselect(query)
        parts = [
            self.compile_columns(query),
            self.compile_from(query),
            self.compile_joins(query),
            self.compile_wheres(query),
            self.compile_groups(query),
            self.compile_havings(query),
            self.compile_orders(query),
            self.compile_limit(query),
            self.compile_offset(query),
        ]
        return " ".join(p for p in parts if p)

    def _compile_aggregate_subselect(self, query: "QueryBuilder") -> str:
        function, column = query._aggregate
        inner = query._without_aggregate()
        target = "*" if column == "*" else self.wrap(column.split(".")[-1])
        return (
            f"SELECT {function.upper()}({target}) AS aggregate "
            f"FROM ({self.compile_select(inner)}) AS aggregate_table"
        )

    def compile_columns(self, query: "QueryBuilder") -> str:
        if query._aggregate is not None:
            function, column = query._aggregate
            target = "*" if column == "*" else self.wrap(column)
            return f"SELECT {function.upper()}({target}) AS aggregate"
        select = "SELECT DISTINCT " if query._distinct else "SELECT "
        return select + self.columnize(query._columns or ["*"])

    def compile_from(self, query: "QueryBuilder") -> str:
        if query._from is None:
            raise QueryFault("No table selected", operation="select")
        return f"FROM {self.wrap_table(query._from)}"

    def compile_joins(self, query: "QueryBuilder") -> str:
        parts = []
        for join in query._joins:
            conditions = self.compile_where_list(join.conditions)
            parts.append(f"{join.type.upper()} JOIN {self.wrap_table(join.table)} ON {conditions}")
        return " ".join(parts)

    def compile_wheres(self, query: "QueryBuilder") -> str:
        if not query._wheres:
            return ""
        return "WHERE " + self.compile_where_list(query._wheres)

    def compile_where_list(self, wheres: List[Dict[str, Any]]) -> str:
        sql = []
        for i, where in enumerate(wheres):
            clause = getattr(self, f"_where_{where['type']}")(where)
            if i:
                sql.append(f"{where['boolean'].upper()} {clause}")
            else:
                sql.append(clause)
        return " ".join(sql)

    def render_operator(self, operator: str) -> str:
        return operator.upper()

    def _where_basic(self, where: Dict[str, Any]) -> str:
        return f"{self.wrap(where['column'])} {self.render_operator(where['operator'])} {self.parameter(where['value'])}"

    def _where_column(self, where: Dict[str, Any]) -> str:
        return f"{self.wrap(where['first'])} {self.render_operator(where['operator'])} {self.wrap(where['second'])}"

    def _where_in(self, where: Dict[str, Any]) -> str:
        if not where["values"]:
            return "0 = 1"
        return f"{self.wrap(where['column'])} IN ({self.parameterize(where['values'])})"

    def _where_not_in(self, where: Dict[str, Any]) -> str:
        if not where["values"]:
            return "1 = 1"
        return f"{self.wrap(where['column'])} NOT IN ({self.parameterize(where['values'])})"

    def _where_null(self, where: Dict[str, Any]) -> str:
        return f"{self.wrap(where['column'])} IS NULL"

    def _where_not_null(self, where: Dict[str, Any]) -> str:
        return f"{self.wrap(where['column'])} IS NOT NULL"

    def _where_between(self, where: Dict[str, Any]) -> str:
        low, high = where["values"]
        keyword = "NOT BETWEEN" if where.get("not") else "BETWEEN"
        return f"{self.wrap(where['column'])} {keyword} {self.parameter(low)} AND {self.parameter(high)}"

    def _where_nested(self, where: Dict[str, Any]) -> str:
        return f"({self.compile_where_list(where['query']._wheres)})"

    def _where_raw(self, where: Dict[str, Any]) -> str:
        return where["sql"]

    def compile_groups(self, query: "QueryBuilder") -> str:
        if not query._groups:
            return ""
        return "GROUP BY " + self.columnize(query._groups)

    def compile_havings(self, query: "QueryBuilder") -> str:
        if not query._havings:
            return ""
        return "HAVING " + self.compile_where_list(query._havings)

    def compile_orders(self, query: "QueryBuilder") -> str:
        if not query._orders:
            return ""
        parts = []
        for order in query._orders:
            if order.get("sql") is not None:
                parts.append(order["sql"])
            else:
                parts.append(f"{self.wrap(order['column'])} {order['direction'].upper()}")
        return "ORDER BY " + ", ".join(parts)

    def compile_limit(self, query: "QueryBuilder") -> str:
        if query._limit is not None:
            return f"LIMIT {int(query._limit)}"
        if query._offset:
            return self.unbounded_limit()
        return ""

    def unbounded_limit(self) -> str:
        return ""

    def compile_offset(self, query: "QueryBuilder") -> str:
        if query._offset:
            return f"OFFSET {int(query._offset)}"
        return ""

    # ── INSERT / UPDATE / DELETE ─────────────────────────────────────

    def compile_insert(self, query: "QueryBuilder", rows: List[Dict[str, Any]]) -> str:
        table = self.wrap_table(query._from)
        if not rows or not rows[0]:
            return self.compile_insert_empty(table)
        columns = list(rows[0].keys())
        values = ", ".join(f"({self.parameterize([row[c] for c in columns])})" for row in rows)
        return f"INSERT INTO {table} ({self.columnize(columns)}) VALUES {values}"

    def compile_insert_empty(self, table: str) -> str:
        return f"INSERT INTO {table} DEFAULT VALUES"

    def compile_insert_get_id(self, query: "QueryBuilder", values: Dict[str, Any], sequence: Optional[str]) -> str:
        return self.compile_insert(query, [values])

    def compile_update(self, query: "QueryBuilder", values: Dict[str, Any]) -> str:
        if not values:
            raise QueryFault("No values to update", operation="update")
        columns = ", ".join(f"{self.wrap(k)} = {self.parameter(v)}" for k, v in values.items())
        parts = [f"UPDATE {self.wrap_table(query._from)} SET {columns}", self.compile_wheres(query)]
        return " ".join(p for p in parts if p)

    def compile_delete(self, query: "QueryBuilder") -> str:
        parts = [f"DELETE FROM {self.wrap_table(query._from)}", self.compile_wheres(query)]
        return " ".join(p for p in parts if p)

    def compile_truncate(self, query: "QueryBuilder") -> List[Tuple[str, List[Any]]]:
        return [(f"TRUNCATE TABLE {self.wrap_table(query._from)}", [])]

    # ── Introspection ────────────────────────────────────────────────

    column_name_key = "column_name"
    table_name_key: Optional[str] = None

    def compile_table_info(self, table: str, schema: str = "") -> Tuple[str, List[Any]]:
        raise NotImplementedError

    def compile_tables(self, schema: str = "") -> Tuple[str, List[Any]]:
        raise NotImplementedError


class MySqlGrammar(Grammar):
    dialect = "mysql"
    quote_open = "`"
    quote_close = "`"
    operators = Grammar.operators + ("<=>", "regexp", "not regexp", "rlike", "sounds like")

    def unbounded_limit(self) -> str:
        return "LIMIT 18446744073709551615"

    def compile_insert_empty(self, table: str) -> str:
        return f"INSERT INTO {table} () VALUES ()"

    column_name_key = "Field"

    def compile_table_info(self, table: str, schema: str = "") -> Tuple[str, List[Any]]:
        return f"DESCRIBE {self.wrap_table(table)}", []

    def compile_tables(self, schema: str = "") -> Tuple[str, List[Any]]:
        return "SHOW TABLES", []


class PostgresGrammar(Grammar):
    dialect = "postgresql"
    operators = Grammar.operators + (
        "ilike", "not ilike", "similar to", "not similar to",
        "~", "~*", "!~", "!~*", "@>", "<@", "?|", "?&",
    )

    def render_operator(self, operator: str) -> str:
        # A doubled "?" survives placeholder conversion as a literal "?".
        return operator.upper().replace("?", "??")

    def compile_insert_get_id(self, query: "QueryBuilder", values: Dict[str, Any], sequence: Optional[str]) -> str:
        sql = self.compile_insert(query, [values])
        return f"{sql} RETURNING {self.wrap(sequence or 'id')}"

    def compile_truncate(self, query: "QueryBuilder") -> List[Tuple[str, List[Any]]]:
        return [(f"TRUNCATE TABLE {self.wrap_table(query._from)} RESTART IDENTITY", [])]

    def compile_table_info(self, table: str, schema: str = "") -> Tuple[str, List[Any]]:
        return (
            "SELECT column_name, data_type, is_nullable, column_default "
            "FROM information_schema.columns "
            "WHERE table_schema = ? AND table_name = ? ORDER BY ordinal_position",
            [schema or "public", self.table_prefix + table],
        )

    table_name_key = "tablename"

    def compile_tables(self, schema: str = "") -> Tuple[str, List[Any]]:
        return "SELECT tablename FROM pg_tables WHERE schemaname = ? ORDER BY tablename", [schema or "public"]


class SQLiteGrammar(Grammar):
    dialect = "sqlite"
    operators = Grammar.operators + ("glob", "not glob", "ilike", "not ilike")

    def check_operator(self, operator: str) -> str:
        op = super().check_operator(operator)
        # SQLite LIKE is already case-insensitive for ASCII
        return {"ilike": "like", "not ilike": "not like"}.get(op, op)

    def unbounded_limit(self) -> str:
        return "LIMIT -1"

    def compile_truncate(self, query: "QueryBuilder") -> List[Tuple[str, List[Any]]]:
        return [(f"DELETE FROM {self.wrap_table(query._from)}", [])]

    column_name_key = "name"

    def compile_table_info(self, table: str, schema: str = "") -> Tuple[str, List[Any]]:
        return f"PRAGMA table_info({self.wrap_table(table)})", []

    table_name_key = "name"

    def compile_tables(self, schema: str = "") -> Tuple[str, List[Any]]:
        return (
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name",
            [],
        )


class SqlServerGrammar(Grammar):
    dialect = "sqlserver"
    quote_open = "["
    quote_close = "]"

    def compile_columns(self, query: "QueryBuilder") -> str:
        sql = super().compile_columns(query)
        if query._aggregate is None and query._limit is not None and not query._offset:
            prefix = "SELECT DISTINCT " if query._distinct else "SELECT "
            sql = f"{prefix}TOP {int(query._limit)} {sql[len(prefix):]}"
        return sql

    def compile_orders(self, query: "QueryBuilder") -> str:
        sql = super().compile_orders(query)
        if not sql and query._offset and query._aggregate is None:
            return "ORDER BY (SELECT 0)"
        return sql

    def compile_limit(self, query: "QueryBuilder") -> str:
        return ""

    def compile_offset(self, query: "QueryBuilder") -> str:
        if not query._offset or query._aggregate is not None:
            return ""
        sql = f"OFFSET {int(query._offset)} ROWS"
        if query._limit is not None:
            sql += f" FETCH NEXT {int(query._limit)} ROWS ONLY"
        return sql

    def compile_insert_get_id(self, query: "QueryBuilder", values: Dict[str, Any], sequence: Optional[str]) -> str:
        table = self.wrap_table(query._from)
        output = f"OUTPUT INSERTED.{self.wrap_value(sequence or 'id')}"
        if not values:
            return f"INSERT INTO {table} {output} DEFAULT VALUES"
        columns = list(values.keys())
        return (
            f"INSERT INTO {table} ({self.columnize(columns)}) {output} "
            f"VALUES ({self.parameterize([values[c] for c in columns])})"
        )

    column_name_key = "COLUMN_NAME"

    def compile_table_info(self, table: str, schema: str = "") -> Tuple[str, List[Any]]:
        return (
            "SELECT COLUMN_NAME, DATA_TYPE, IS_NULLABLE, COLUMN_DEFAULT "
            "FROM INFORMATION_SCHEMA.COLUMNS WHERE TABLE_NAME = ? ORDER BY ORDINAL_POSITION",
            [self.table_prefix + table],
        )

    table_name_key = "TABLE_NAME"

    def compile_tables(self, schema: str = "") -> Tuple[str, List[Any]]:
        return (
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME",
            [],
        )


_GRAMMARS = {
    "mysql": MySqlGrammar,
    "postgresql": PostgresGrammar,
    "sqlite": SQLiteGrammar,
    "sqlserver": SqlServerGrammar,
}


def get_grammar(dialect: str, table_prefix: str = "") -> Grammar:
    """Return the query grammar for a canonical dialect name."""
    try:
        return _GRAMMARS[dialect](table_prefix)
    except KeyError:
        raise QueryFault(f"No query grammar for dialect '{dialect}'", operation="compile") from None
