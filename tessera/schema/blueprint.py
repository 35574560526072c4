"""
Tessera Schema — Blueprint.

A Blueprint records column definitions and table commands for one table,
in declaration order. A schema grammar compiles it to DDL.

Usage:
    def widgets(table: Blueprint):
        table.id()
        table.string("name").unique()
        table.decimal("price", 8, 2).nullable()
        table.foreign_id("category_id").nullable()
        table.foreign("category_id").references("id").on("categories").null_on_delete()
        table.timestamps()

    schema.create("widgets", widgets)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union


class _SentinelType:
    """Sentinel to distinguish 'no default' from a NULL default."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "<NO_DEFAULT>"

    def __bool__(self):
        return False


NO_DEFAULT = _SentinelType()


@dataclass
class ColumnDefinition:
    """
    One column. Modifiers return ``self`` so they chain::

        table.integer("votes").unsigned().default(0).comment("cached")
    """

    type: str
    name: str
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    allowed: List[str] = field(default_factory=list)
    is_nullable: bool = False
    default_value: Any = NO_DEFAULT
    is_unsigned: bool = False
    is_auto_increment: bool = False
    is_primary: bool = False
    comment_text: Optional[str] = None
    blueprint: Optional["Blueprint"] = field(default=None, repr=False, compare=False)

    def nullable(self, value: bool = True) -> "ColumnDefinition":
        self.is_nullable = value
        return self

    def default(self, value: Any) -> "ColumnDefinition":
        self.default_value = value
        return self

    def unsigned(self) -> "ColumnDefinition":
        self.is_unsigned = True
        return self

    def auto_increment(self) -> "ColumnDefinition":
        self.is_auto_increment = True
        return self

    def comment(self, text: str) -> "ColumnDefinition":
        self.comment_text = text
        return self

    def primary(self) -> "ColumnDefinition":
        if self.blueprint is not None:
            self.blueprint.primary(self.name)
        return self

    def unique(self, name: Optional[str] = None) -> "ColumnDefinition":
        if self.blueprint is not None:
            self.blueprint.unique(self.name, name)
        return self

    def index(self, name: Optional[str] = None) -> "ColumnDefinition":
        if self.blueprint is not None:
            self.blueprint.index(self.name, name)
        return self

    def constrained(self, table: Optional[str] = None, column: str = "id") -> "ForeignKeyDefinition":
        """
        Add a foreign key for this column, guessing the table from the name
        (``user_id`` references ``users.id``).
        """
        if self.blueprint is None:
            raise ValueError("constrained() needs a column attached to a blueprint")
        if table is None:
            base = self.name[:-3] if self.name.endswith("_id") else self.name
            table = base + "s"
        return self.blueprint.foreign(self.name).references(column).on(table)


@dataclass
class Command:
    """A table-level command (index, unique, primary, drop_column ...)."""

    name: str
    columns: List[str] = field(default_factory=list)
    index: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ForeignKeyDefinition(Command):
    """FOREIGN KEY command with fluent referencing clauses."""

    references_columns: List[str] = field(default_factory=list)
    on_table: Optional[str] = None
    on_delete_action: Optional[str] = None
    on_update_action: Optional[str] = None

    def references(self, columns: Union[str, Sequence[str]]) -> "ForeignKeyDefinition":
        self.references_columns = [columns] if isinstance(columns, str) else list(columns)
        return self

    def on(self, table: str) -> "ForeignKeyDefinition":
        self.on_table = table
        return self

    def on_delete(self, action: str) -> "ForeignKeyDefinition":
        self.on_delete_action = action.upper()
        return self

    def on_update(self, action: str) -> "ForeignKeyDefinition":
        self.on_update_action = action.upper()
        return self

    def cascade_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("CASCADE")

    def null_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("SET NULL")

    def restrict_on_delete(self) -> "ForeignKeyDefinition":
        return self.on_delete("RESTRICT")

    def cascade_on_update(self) -> "ForeignKeyDefinition":
        return self.on_update("CASCADE")


class Blueprint:
    """Ordered column definitions and commands for one table."""

    def __init__(self, table: str, action: str = "alter", prefix: str = ""):
        self.table = table
        self.action = action
        self.prefix = prefix
        self.columns: List[ColumnDefinition] = []
        self.commands: List[Command] = []
        self.engine: Optional[str] = None
        self.charset: Optional[str] = None
        self.collation: Optional[str] = None

    def creating(self) -> bool:
        return self.action == "create"

    # ── Internal ─────────────────────────────────────────────────────

    def add_column(self, type: str, name: str, **attributes: Any) -> ColumnDefinition:
        column = ColumnDefinition(type=type, name=name, blueprint=self, **attributes)
        self.columns.append(column)
        return column

    def _add_command(self, name: str, columns: Sequence[str] = (), index: Optional[str] = None, **options: Any) -> Command:
        command = Command(name=name, columns=list(columns), index=index, options=options)
        self.commands.append(command)
        return command

    def create_index_name(self, type: str, columns: Sequence[str]) -> str:
        """``{table}_{col1}_{col2}_{type}``, lower-case."""
        raw_name = f"{self.prefix}{self.table}_{'_'.join(columns)}_{type}"
        return raw_name.lower().replace("-", "_").replace(".", "_")

    def _index_command(self, type: str, columns: Union[str, Sequence[str]], name: Optional[str]) -> Command:
        cols = [columns] if isinstance(columns, str) else list(columns)
        return self._add_command(type, cols, name or self.create_index_name(type, cols))

    # ── Column types ─────────────────────────────────────────────────

    def id(self, name: str = "id") -> ColumnDefinition:
        return self.big_increments(name)

    def increments(self, name: str) -> ColumnDefinition:
        return self.add_column("integer", name, is_unsigned=True, is_auto_increment=True, is_primary=True)

    def big_increments(self, name: str) -> ColumnDefinition:
        return self.add_column("big_integer", name, is_unsigned=True, is_auto_increment=True, is_primary=True)

    def string(self, name: str, length: int = 255) -> ColumnDefinition:
        return self.add_column("string", name, length=length)

    def char(self, name: str, length: int = 255) -> ColumnDefinition:
        return self.add_column("char", name, length=length)

    def text(self, name: str) -> ColumnDefinition:
        return self.add_column("text", name)

    def medium_text(self, name: str) -> ColumnDefinition:
        return self.add_column("medium_text", name)

    def long_text(self, name: str) -> ColumnDefinition:
        return self.add_column("long_text", name)

    def integer(self, name: str, auto_increment: bool = False, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("integer", name, is_auto_increment=auto_increment, is_unsigned=unsigned)

    def big_integer(self, name: str, auto_increment: bool = False, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("big_integer", name, is_auto_increment=auto_increment, is_unsigned=unsigned)

    def small_integer(self, name: str, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("small_integer", name, is_unsigned=unsigned)

    def tiny_integer(self, name: str, unsigned: bool = False) -> ColumnDefinition:
        return self.add_column("tiny_integer", name, is_unsigned=unsigned)

    def unsigned_integer(self, name: str) -> ColumnDefinition:
        return self.integer(name, unsigned=True)

    def unsigned_big_integer(self, name: str) -> ColumnDefinition:
        return self.big_integer(name, unsigned=True)

    def boolean(self, name: str) -> ColumnDefinition:
        return self.add_column("boolean", name)

    def decimal(self, name: str, precision: int = 8, scale: int = 2) -> ColumnDefinition:
        return self.add_column("decimal", name, precision=precision, scale=scale)

    def float(self, name: str, precision: int = 8, scale: int = 2) -> ColumnDefinition:
        return self.add_column("float", name, precision=precision, scale=scale)

    def double(self, name: str) -> ColumnDefinition:
        return self.add_column("double", name)

    def date(self, name: str) -> ColumnDefinition:
        return self.add_column("date", name)

    def date_time(self, name: str) -> ColumnDefinition:
        return self.add_column("date_time", name)

    def time(self, name: str) -> ColumnDefinition:
        return self.add_column("time", name)

    def timestamp(self, name: str) -> ColumnDefinition:
        return self.add_column("timestamp", name)

    def timestamps(self) -> None:
        """Nullable ``created_at`` and ``updated_at``."""
        self.timestamp("created_at").nullable()
        self.timestamp("updated_at").nullable()

    def soft_deletes(self, column: str = "deleted_at") -> ColumnDefinition:
        return self.timestamp(column).nullable()

    def json(self, name: str) -> ColumnDefinition:
        return self.add_column("json", name)

    def enum(self, name: str, allowed: Sequence[str]) -> ColumnDefinition:
        return self.add_column("enum", name, allowed=[str(a) for a in allowed])

    def uuid(self, name: str = "uuid") -> ColumnDefinition:
        return self.add_column("uuid", name)

    def binary(self, name: str) -> ColumnDefinition:
        return self.add_column("binary", name)

    def foreign_id(self, name: str) -> ColumnDefinition:
        """Unsigned BIGINT sized to match ``id()`` keys."""
        return self.unsigned_big_integer(name)

    def morphs(self, name: str, nullable: bool = False) -> None:
        """``{name}_type`` + ``{name}_id`` and a composite index over them."""
        self.string(f"{name}_type").nullable(nullable)
        self.unsigned_big_integer(f"{name}_id").nullable(nullable)
        self.index([f"{name}_type", f"{name}_id"])

    def nullable_morphs(self, name: str) -> None:
        self.morphs(name, nullable=True)

    # ── Commands ─────────────────────────────────────────────────────

    def primary(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("primary", columns, name)

    def unique(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("unique", columns, name)

    def index(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> Command:
        return self._index_command("index", columns, name)

    def foreign(self, columns: Union[str, Sequence[str]], name: Optional[str] = None) -> ForeignKeyDefinition:
        cols = [columns] if isinstance(columns, str) else list(columns)
        command = ForeignKeyDefinition(
            name="foreign",
            columns=cols,
            index=name or self.create_index_name("foreign", cols),
        )
        self.commands.append(command)
        return command

    def drop_column(self, *columns: Union[str, Sequence[str]]) -> Command:
        cols: List[str] = []
        for column in columns:
            cols.extend([column] if isinstance(column, str) else column)
        return self._add_command("drop_column", cols)

    def rename_column(self, old: str, new: str) -> Command:
        return self._add_command("rename_column", [old], to=new)

    def drop_index(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_index", "index", index)

    def drop_unique(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_unique", "unique", index)

    def drop_foreign(self, index: Union[str, Sequence[str]]) -> Command:
        return self._drop_index_command("drop_foreign", "foreign", index)

    def _drop_index_command(self, command: str, type: str, index: Union[str, Sequence[str]]) -> Command:
        # A list of columns means "the conventionally named index over them"
        if isinstance(index, str):
            return self._add_command(command, [], index)
        columns = list(index)
        return self._add_command(command, columns, self.create_index_name(type, columns))

    def drop_timestamps(self) -> Command:
        return self.drop_column("created_at", "updated_at")

    def drop_soft_deletes(self, column: str = "deleted_at") -> Command:
        return self.drop_column(column)

    def __repr__(self) -> str:
        return f"<Blueprint {self.action} {self.table!r} columns={[c.name for c in self.columns]}>"
