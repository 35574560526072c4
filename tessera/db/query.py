"""
Tessera DB — Fluent query builder.

Every chain method returns a NEW builder, so a builder can be branched
freely (``base.where(...)`` never mutates ``base``)::

    active = conn.table("users").where("active", True)
    admins = active.where("role", "admin").order_by_desc("created_at")
    total = active.count()

Clause fragments are stored in order and rendered by the connection's
grammar. Bindings are kept per clause section and flattened in render
order, so the N-th ``?`` always receives the N-th binding.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..faults import QueryFault
from .grammar import Grammar, Raw

if TYPE_CHECKING:
    from .connection import Connection

__all__ = ["QueryBuilder", "JoinClause", "Raw", "raw"]

_UNSET = object()

_BINDING_SECTIONS = ("select", "join", "where", "having", "order")


def raw(sql: str, *bindings: Any) -> Raw:
    """Shortcut for ``Raw(sql, bindings)``."""
    return Raw(sql, bindings)


class JoinClause:
    """ON conditions for one JOIN, built with ``on`` / ``or_on`` / ``where``."""

    def __init__(self, type: str, table: Any, grammar: Grammar):
        self.type = type
        self.table = table
        self.grammar = grammar
        self.conditions: List[Dict[str, Any]] = []
        self.bindings: List[Any] = []

    def on(self, first: Any, operator: Any = None, second: Any = None, boolean: str = "and") -> "JoinClause":
        if second is None:
            operator, second = "=", operator
        self.conditions.append({
            "type": "column",
            "first": first,
            "operator": self.grammar.check_operator(operator),
            "second": second,
            "boolean": boolean,
        })
        return self

    def or_on(self, first: Any, operator: Any = None, second: Any = None) -> "JoinClause":
        return self.on(first, operator, second, boolean="or")

    def where(self, column: str, operator: Any, value: Any = _UNSET, boolean: str = "and") -> "JoinClause":
        if value is _UNSET:
            operator, value = "=", operator
        self.conditions.append({
            "type": "basic",
            "column": column,
            "operator": self.grammar.check_operator(operator),
            "value": value,
            "boolean": boolean,
        })
        if isinstance(value, Raw):
            self.bindings.extend(value.bindings)
        else:
            self.bindings.append(value)
        return self


class QueryBuilder:
    """
    Chainable, immutable SQL query builder bound to a ``Connection``.

    Reads return plain row dicts; writes return ids or affected-row counts.
    """

    __slots__ = (
        "connection",
        "grammar",
        "_from",
        "_columns",
        "_distinct",
        "_joins",
        "_wheres",
        "_groups",
        "_havings",
        "_orders",
        "_limit",
        "_offset",
        "_aggregate",
        "_bindings",
    )

    def __init__(
        self,
        connection: Optional["Connection"] = None,
        grammar: Optional[Grammar] = None,
        table: Any = None,
    ):
        self.connection = connection
        if grammar is None:
            grammar = connection.grammar if connection is not None else Grammar()
        self.grammar = grammar
        self._from = table
        self._columns: List[Any] = []
        self._distinct = False
        self._joins: List[JoinClause] = []
        self._wheres: List[Dict[str, Any]] = []
        self._groups: List[Any] = []
        self._havings: List[Dict[str, Any]] = []
        self._orders: List[Dict[str, Any]] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._aggregate: Optional[Tuple[str, str]] = None
        self._bindings: Dict[str, List[Any]] = {section: [] for section in _BINDING_SECTIONS}

    # ── Internal ─────────────────────────────────────────────────────

    def _clone(self) -> "QueryBuilder":
        """Create an independent copy of this builder."""
        c = QueryBuilder(self.connection, self.grammar, self._from)
        c._columns = self._columns.copy()
        c._distinct = self._distinct
        c._joins = self._joins.copy()
        c._wheres = self._wheres.copy()
        c._groups = self._groups.copy()
        c._havings = self._havings.copy()
        c._orders = self._orders.copy()
        c._limit = self._limit
        c._offset = self._offset
        c._aggregate = self._aggregate
        c._bindings = {section: values.copy() for section, values in self._bindings.items()}
        return c

    def clone(self) -> "QueryBuilder":
        return self._clone()

    def new_query(self) -> "QueryBuilder":
        """A blank builder on the same connection and table."""
        return QueryBuilder(self.connection, self.grammar, self._from)

    def _add_binding(self, value: Any, section: str = "where") -> None:
        if isinstance(value, Raw):
            self._bindings[section].extend(value.bindings)
        elif isinstance(value, (list, tuple)):
            for v in value:
                self._add_binding(v, section)
        else:
            self._bindings[section].append(value)

    def _require_connection(self) -> "Connection":
        if self.connection is None:
            raise QueryFault("Query builder is not bound to a connection", sql=self.to_sql())
        return self.connection

    def _without_aggregate(self) -> "QueryBuilder":
        c = self._clone()
        c._aggregate = None
        return c

    # ── Chain methods: SELECT list and source ────────────────────────

    def table(self, table: Any) -> "QueryBuilder":
        new = self._clone()
        new._from = table
        return new

    from_ = table

    def select(self, *columns: Any) -> "QueryBuilder":
        """Replace the select list (``select("id", "name as label")``)."""
        new = self._clone()
        new._columns = []
        new._bindings["select"] = []
        for column in _flatten(columns):
            new._columns.append(column)
            if isinstance(column, Raw):
                new._add_binding(column, "select")
        return new

    def add_select(self, *columns: Any) -> "QueryBuilder":
        new = self._clone()
        if not new._columns:
            new._columns = [f"{_table_name(new._from)}.*"] if new._from is not None else []
        for column in _flatten(columns):
            new._columns.append(column)
            if isinstance(column, Raw):
                new._add_binding(column, "select")
        return new

    def select_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "QueryBuilder":
        return self.add_select(Raw(sql, bindings)) if self._columns else self.select(Raw(sql, bindings))

    def distinct(self) -> "QueryBuilder":
        new = self._clone()
        new._distinct = True
        return new

    # ── Chain methods: JOIN ──────────────────────────────────────────

    def join(
        self,
        table: Any,
        first: Any,
        operator: Any = None,
        second: Any = None,
        type: str = "inner",
    ) -> "QueryBuilder":
        """
        Add a JOIN.

        Usage:
            .join("posts", "users.id", "=", "posts.user_id")
            .join("posts", "users.id", "posts.user_id")
            .left_join("posts", lambda j: j.on("users.id", "posts.user_id").where("posts.draft", False))
        """
        new = self._clone()
        clause = JoinClause(type, table, new.grammar)
        if callable(first) and not isinstance(first, (str, Raw)):
            clause = first(clause) or clause
        else:
            clause.on(first, operator, second)
        new._joins.append(clause)
        new._bindings["join"].extend(clause.bindings)
        return new

    def left_join(self, table: Any, first: Any, operator: Any = None, second: Any = None) -> "QueryBuilder":
        return self.join(table, first, operator, second, type="left")

    def right_join(self, table: Any, first: Any, operator: Any = None, second: Any = None) -> "QueryBuilder":
        return self.join(table, first, operator, second, type="right")

    # ── Chain methods: WHERE ─────────────────────────────────────────

    def where(
        self,
        column: Any,
        operator: Any = _UNSET,
        value: Any = _UNSET,
        boolean: str = "and",
    ) -> "QueryBuilder":
        """
        Add a WHERE condition.

        Forms:
            .where("votes", 100)                   # operator defaults to "="
            .where("votes", ">", 100)
            .where({"status": "open", "kind": 2})  # equality group
            .where(lambda q: q.where("a", 1).or_where("b", 2))  # (a = ? OR b = ?)
            .where("deleted_at", None)             # IS NULL
        """
        if isinstance(column, dict):
            items = list(column.items())
            return self.where(
                lambda q: _chain_equalities(q, items),
                boolean=boolean,
            )

        if callable(column) and not isinstance(column, (str, Raw)):
            return self._where_nested(column, boolean)

        if operator is _UNSET:
            raise QueryFault(f"Missing value for where clause on '{column}'", operation="where")
        if value is _UNSET:
            operator, value = "=", operator

        op = self.grammar.check_operator(operator)

        if op in ("in", "not in"):
            return self.where_in(column, value, boolean=boolean, not_=op == "not in")

        if value is None:
            if op == "=":
                return self.where_null(column, boolean=boolean)
            if op in ("!=", "<>"):
                return self.where_not_null(column, boolean=boolean)
            raise QueryFault(f"Illegal operator '{operator}' for a NULL comparison", operation="where")

        new = self._clone()
        new._wheres.append({
            "type": "basic",
            "column": column,
            "operator": op,
            "value": value,
            "boolean": boolean,
        })
        new._add_binding(value)
        return new

    def or_where(self, column: Any, operator: Any = _UNSET, value: Any = _UNSET) -> "QueryBuilder":
        return self.where(column, operator, value, boolean="or")

    def _where_nested(self, callback: Callable[["QueryBuilder"], "QueryBuilder"], boolean: str) -> "QueryBuilder":
        nested = callback(self.new_query())
        if not isinstance(nested, QueryBuilder):
            raise QueryFault("Nested where callback must return the query builder", operation="where")
        if not nested._wheres:
            return self
        new = self._clone()
        new._wheres.append({"type": "nested", "query": nested, "boolean": boolean})
        new._bindings["where"].extend(nested._bindings["where"])
        return new

    def where_column(self, first: Any, operator: Any, second: Any = None, boolean: str = "and") -> "QueryBuilder":
        if second is None:
            operator, second = "=", operator
        new = self._clone()
        new._wheres.append({
            "type": "column",
            "first": first,
            "operator": new.grammar.check_operator(operator),
            "second": second,
            "boolean": boolean,
        })
        return new

    def where_in(self, column: Any, values: Iterable[Any], boolean: str = "and", not_: bool = False) -> "QueryBuilder":
        values = list(values)
        new = self._clone()
        new._wheres.append({
            "type": "not_in" if not_ else "in",
            "column": column,
            "values": values,
            "boolean": boolean,
        })
        new._add_binding(values)
        return new

    def or_where_in(self, column: Any, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, boolean="or")

    def where_not_in(self, column: Any, values: Iterable[Any], boolean: str = "and") -> "QueryBuilder":
        return self.where_in(column, values, boolean=boolean, not_=True)

    def or_where_not_in(self, column: Any, values: Iterable[Any]) -> "QueryBuilder":
        return self.where_in(column, values, boolean="or", not_=True)

    def where_null(self, column: Any, boolean: str = "and", not_: bool = False) -> "QueryBuilder":
        new = self._clone()
        new._wheres.append({"type": "not_null" if not_ else "null", "column": column, "boolean": boolean})
        return new

    def or_where_null(self, column: Any) -> "QueryBuilder":
        return self.where_null(column, boolean="or")

    def where_not_null(self, column: Any, boolean: str = "and") -> "QueryBuilder":
        return self.where_null(column, boolean=boolean, not_=True)

    def or_where_not_null(self, column: Any) -> "QueryBuilder":
        return self.where_null(column, boolean="or", not_=True)

    def where_between(
        self,
        column: Any,
        values: Sequence[Any],
        boolean: str = "and",
        not_: bool = False,
    ) -> "QueryBuilder":
        values = list(values)
        if len(values) != 2:
            raise QueryFault(
                f"where_between on '{column}' needs exactly two values, got {len(values)}",
                operation="where",
            )
        new = self._clone()
        new._wheres.append({
            "type": "between",
            "column": column,
            "values": values,
            "boolean": boolean,
            "not": not_,
        })
        new._add_binding(values)
        return new

    def or_where_between(self, column: Any, values: Sequence[Any]) -> "QueryBuilder":
        return self.where_between(column, values, boolean="or")

    def where_not_between(self, column: Any, values: Sequence[Any], boolean: str = "and") -> "QueryBuilder":
        return self.where_between(column, values, boolean=boolean, not_=True)

    def where_like(self, column: Any, pattern: str, boolean: str = "and") -> "QueryBuilder":
        return self.where(column, "like", pattern, boolean=boolean)

    def or_where_like(self, column: Any, pattern: str) -> "QueryBuilder":
        return self.where(column, "like", pattern, boolean="or")

    def where_raw(self, sql: str, bindings: Sequence[Any] = (), boolean: str = "and") -> "QueryBuilder":
        new = self._clone()
        new._wheres.append({"type": "raw", "sql": sql, "boolean": boolean})
        new._bindings["where"].extend(bindings)
        return new

    def or_where_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "QueryBuilder":
        return self.where_raw(sql, bindings, boolean="or")

    # ── Chain methods: GROUP / HAVING / ORDER / LIMIT ────────────────

    def group_by(self, *columns: Any) -> "QueryBuilder":
        new = self._clone()
        new._groups.extend(_flatten(columns))
        return new

    def having(self, column: Any, operator: Any, value: Any = _UNSET, boolean: str = "and") -> "QueryBuilder":
        if value is _UNSET:
            operator, value = "=", operator
        new = self._clone()
        new._havings.append({
            "type": "basic",
            "column": column,
            "operator": new.grammar.check_operator(operator),
            "value": value,
            "boolean": boolean,
        })
        new._add_binding(value, "having")
        return new

    def or_having(self, column: Any, operator: Any, value: Any = _UNSET) -> "QueryBuilder":
        return self.having(column, operator, value, boolean="or")

    def having_raw(self, sql: str, bindings: Sequence[Any] = (), boolean: str = "and") -> "QueryBuilder":
        new = self._clone()
        new._havings.append({"type": "raw", "sql": sql, "boolean": boolean})
        new._bindings["having"].extend(bindings)
        return new

    def order_by(self, column: Any, direction: str = "asc") -> "QueryBuilder":
        direction = str(direction).lower()
        if direction not in ("asc", "desc"):
            raise QueryFault(f"Order direction must be 'asc' or 'desc', got '{direction}'", operation="order_by")
        new = self._clone()
        new._orders.append({"column": column, "direction": direction})
        return new

    def order_by_desc(self, column: Any) -> "QueryBuilder":
        return self.order_by(column, "desc")

    def order_by_raw(self, sql: str, bindings: Sequence[Any] = ()) -> "QueryBuilder":
        new = self._clone()
        new._orders.append({"sql": sql})
        new._bindings["order"].extend(bindings)
        return new

    def latest(self, column: str = "created_at") -> "QueryBuilder":
        return self.order_by(column, "desc")

    def oldest(self, column: str = "created_at") -> "QueryBuilder":
        return self.order_by(column, "asc")

    def reorder(self) -> "QueryBuilder":
        new = self._clone()
        new._orders = []
        new._bindings["order"] = []
        return new

    def limit(self, n: Optional[int]) -> "QueryBuilder":
        """Set LIMIT on query results (``None`` or a negative value clears it)."""
        new = self._clone()
        new._limit = int(n) if n is not None and int(n) >= 0 else None
        return new

    take = limit

    def offset(self, n: Optional[int]) -> "QueryBuilder":
        new = self._clone()
        new._offset = max(0, int(n)) if n is not None else None
        return new

    skip = offset

    def for_page(self, page: int, per_page: int = 15) -> "QueryBuilder":
        page = max(1, int(page))
        return self.offset((page - 1) * per_page).limit(per_page)

    def __getitem__(self, key: Any) -> "QueryBuilder":
        """
        Slicing sets OFFSET/LIMIT.

        Usage:
            top_5 = conn.table("scores").order_by_desc("points")[:5]
        """
        if isinstance(key, slice):
            new = self
            start = key.start or 0
            if key.start is not None:
                new = new.offset(key.start)
            if key.stop is not None:
                new = new.limit(int(key.stop) - start)
            return new
        if isinstance(key, int):
            return self.offset(key).limit(1)
        raise TypeError(f"QueryBuilder indices must be integers or slices, not {type(key).__name__}")

    # ── Compilation ──────────────────────────────────────────────────

    def to_sql(self) -> str:
        """Render the SELECT with ``?`` placeholders."""
        return self.grammar.compile_select(self)

    def get_bindings(self) -> List[Any]:
        """Bindings in placeholder order."""
        out: List[Any] = []
        for section in _BINDING_SECTIONS:
            out.extend(self._bindings[section])
        return out

    def _where_bindings(self) -> List[Any]:
        return self._bindings["join"] + self._bindings["where"]

    def __repr__(self) -> str:
        return f"<QueryBuilder: {self.to_sql()}>"

    # ── Terminal: reads ──────────────────────────────────────────────

    def get(self, *columns: Any) -> List[Dict[str, Any]]:
        """Execute the SELECT and return every row."""
        query = self.select(*columns) if columns else self
        conn = query._require_connection()
        return conn.select(query.to_sql(), query.get_bindings())

    def first(self, *columns: Any) -> Optional[Dict[str, Any]]:
        """First row or ``None``."""
        rows = self.limit(1).get(*columns)
        return rows[0] if rows else None

    def find(self, id: Any, column: str = "id") -> Optional[Dict[str, Any]]:
        return self.where(column, "=", id).first()

    def value(self, column: Any) -> Any:
        """Single column of the first row."""
        row = self.first(column)
        if row is None:
            return None
        return next(iter(row.values()))

    def pluck(self, column: Any, key: Any = None) -> Union[List[Any], Dict[Any, Any]]:
        """
        Column values as a list, or a dict keyed by ``key``.

        Usage:
            names = conn.table("users").pluck("name")
            by_id = conn.table("users").pluck("name", "id")
        """
        columns = [column] if key is None else [column, key]
        rows = self.select(*columns).get()
        value_key = _result_key(column)
        if key is None:
            return [row[value_key] for row in rows]
        key_key = _result_key(key)
        return {row[key_key]: row[value_key] for row in rows}

    def exists(self) -> bool:
        """LIMIT-1 existence check."""
        check = self._clone()
        check._columns = [Raw("1 AS hit")]
        check._bindings["select"] = []
        check._orders = []
        check._bindings["order"] = []
        check._offset = None
        check = check.limit(1)
        conn = check._require_connection()
        return conn.select_one(check.to_sql(), check.get_bindings()) is not None

    def doesnt_exist(self) -> bool:
        return not self.exists()

    # ── Terminal: aggregates ─────────────────────────────────────────

    def aggregate(self, function: str, column: str = "*") -> Any:
        query = self._clone()
        query._aggregate = (function, column)
        query._orders = []
        query._bindings["order"] = []
        query._limit = None
        query._offset = None
        if not (query._groups or query._distinct):
            query._columns = []
            query._bindings["select"] = []
        conn = query._require_connection()
        return conn.scalar(query.to_sql(), query.get_bindings())

    def count(self, column: str = "*") -> int:
        return int(self.aggregate("count", column) or 0)

    def sum(self, column: str) -> Any:
        result = self.aggregate("sum", column)
        return result if result is not None else 0

    def avg(self, column: str) -> Any:
        return self.aggregate("avg", column)

    average = avg

    def min(self, column: str) -> Any:
        return self.aggregate("min", column)

    def max(self, column: str) -> Any:
        return self.aggregate("max", column)

    # ── Terminal: paging ─────────────────────────────────────────────

    def paginate(self, page: int = 1, per_page: int = 15) -> Dict[str, Any]:
        """
        Run a COUNT and one page of the SELECT.

        Returns:
            ``{data, total, per_page, current_page, last_page, from, to}``
            where ``from``/``to`` are 1-based row positions (``None`` for an
            empty page) and ``last_page = ceil(total / per_page)``.
        """
        page = max(1, int(page))
        per_page = max(1, int(per_page))
        total = self.count()
        data = self.for_page(page, per_page).get() if total else []
        return _page_payload(data, total, page, per_page)

    def chunk(self, count: int, callback: Callable[[List[Dict[str, Any]]], Any]) -> bool:
        """
        Feed the results to ``callback`` in windows of ``count`` rows.

        Windows are OFFSET/LIMIT pages, so order the query on a stable key.
        Stops early when a window is short or the callback returns False.
        """
        if count <= 0:
            raise QueryFault("Chunk size must be positive", operation="chunk")
        page = 1
        while True:
            rows = self.for_page(page, count).get()
            if not rows:
                break
            if callback(rows) is False:
                return False
            if len(rows) < count:
                break
            page += 1
        return True

    # ── Terminal: writes ─────────────────────────────────────────────

    def insert(self, values: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> Any:
        """
        Insert one row (returns the new id) or many rows (returns the count).
        """
        if isinstance(values, dict):
            return self.insert_get_id(values)
        rows = [dict(v) for v in values]
        if not rows:
            return 0
        columns = list(rows[0].keys())
        for row in rows[1:]:
            if list(row.keys()) != columns and set(row.keys()) != set(columns):
                raise QueryFault("Multi-row insert needs the same columns in every row", operation="insert")
        sql = self.grammar.compile_insert(self, rows)
        bindings: List[Any] = []
        for row in rows:
            for column in columns:
                self._collect_value_binding(row[column], bindings)
        return self._require_connection().statement(sql, bindings)

    def insert_get_id(self, values: Dict[str, Any], sequence: Optional[str] = "id") -> Any:
        sql = self.grammar.compile_insert_get_id(self, values, sequence)
        bindings: List[Any] = []
        for value in values.values():
            self._collect_value_binding(value, bindings)
        return self._require_connection().insert(sql, bindings)

    def update(self, values: Dict[str, Any]) -> int:
        """UPDATE matching rows; returns the affected row count."""
        self._reject_joins("update")
        sql = self.grammar.compile_update(self, values)
        bindings: List[Any] = []
        for value in values.values():
            self._collect_value_binding(value, bindings)
        bindings.extend(self._where_bindings())
        return self._require_connection().update(sql, bindings)

    def increment(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        if not isinstance(amount, (int, float, Decimal)) or isinstance(amount, bool):
            raise QueryFault("Non-numeric value passed to increment", operation="increment")
        values = {column: Raw(f"{self.grammar.wrap(column)} + ?", [amount])}
        values.update(extra or {})
        return self.update(values)

    def decrement(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        if not isinstance(amount, (int, float, Decimal)) or isinstance(amount, bool):
            raise QueryFault("Non-numeric value passed to decrement", operation="decrement")
        values = {column: Raw(f"{self.grammar.wrap(column)} - ?", [amount])}
        values.update(extra or {})
        return self.update(values)

    def delete(self, id: Any = None) -> int:
        """DELETE matching rows (or the row with ``id``); returns the count."""
        self._reject_joins("delete")
        query = self.where("id", "=", id) if id is not None else self
        sql = query.grammar.compile_delete(query)
        return query._require_connection().delete(sql, query._where_bindings())

    def truncate(self) -> None:
        conn = self._require_connection()
        for sql, bindings in self.grammar.compile_truncate(self):
            conn.statement(sql, bindings)

    def _reject_joins(self, operation: str) -> None:
        # UPDATE and DELETE are compiled without a join clause on every dialect.
        if self._joins:
            raise QueryFault(
                f"Cannot {operation} through a joined query",
                operation=operation,
            )

    @staticmethod
    def _collect_value_binding(value: Any, bindings: List[Any]) -> None:
        if isinstance(value, Raw):
            bindings.extend(value.bindings)
        else:
            bindings.append(value)


# ── Helpers ──────────────────────────────────────────────────────────


def _flatten(columns: Iterable[Any]) -> List[Any]:
    out: List[Any] = []
    for column in columns:
        if isinstance(column, (list, tuple)):
            out.extend(column)
        else:
            out.append(column)
    return out


def _chain_equalities(query: QueryBuilder, items: List[Tuple[str, Any]]) -> QueryBuilder:
    for key, value in items:
        query = query.where(key, "=", value)
    return query


def _table_name(table: Any) -> str:
    table = str(table)
    lowered = table.lower()
    if " as " in lowered:
        return table[lowered.index(" as ") + 4:].strip()
    return table


def _result_key(column: Any) -> str:
    """The key a selected column shows up under in a result row."""
    if isinstance(column, Raw):
        return column.sql
    column = str(column)
    lowered = column.lower()
    if " as " in lowered:
        return column[lowered.index(" as ") + 4:].strip()
    return column.split(".")[-1]


def _page_payload(data: List[Any], total: int, page: int, per_page: int) -> Dict[str, Any]:
    offset = (page - 1) * per_page
    return {
        "data": data,
        "total": total,
        "per_page": per_page,
        "current_page": page,
        "last_page": math.ceil(total / per_page),
        "from": offset + 1 if data else None,
        "to": offset + len(data) if data else None,
    }
