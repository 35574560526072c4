"""
Tessera Model Options — parsed from the inner Meta class.

Contains the Options class which stores model metadata like
table_name, primary_key, fillable, casts, timestamps, soft_deletes, etc.
Options a subclass does not set are inherited from its parent model.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from ..faults import ConfigurationFault
from .casts import DEFAULT_DATE_FORMAT, is_valid_cast

__all__ = ["Options", "snake_case"]

_MISSING = object()

_CAMEL_BOUNDARY_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_BOUNDARY_2 = re.compile(r"([a-z0-9])([A-Z])")


def snake_case(name: str) -> str:
    """``BlogPost`` -> ``blog_post``."""
    name = _CAMEL_BOUNDARY_1.sub(r"\1_\2", name)
    return _CAMEL_BOUNDARY_2.sub(r"\1_\2", name).lower()


class Options:
    """
    Parsed model options from inner Meta class.

    Attributes:
        table_name: Database table name (default: snake_case class name + "s")
        primary_key: Primary key column (default "id")
        key_type: "int" or "str"
        incrementing: Whether the backend assigns the key
        fillable: Mass-assignment allow-list
        guarded: Mass-assignment deny-list (["*"] blocks everything)
        hidden: Keys left out of to_dict()
        visible: Allow-list for to_dict(); wins over hidden when non-empty
        casts: column -> cast type
        dates: Columns cast as datetime
        appends: Accessor-only keys added to to_dict()
        with_related: Relations eager-loaded on every query
        timestamps: Maintain created_at / updated_at
        soft_deletes: Stamp deleted_at instead of deleting
        date_format: strftime format used for storage and serialisation
        connection: Connection name (None = manager default)
        per_page: Default page size for paginate()
        morph_name: Tag stored in *_type columns (default: class name)
    """

    __slots__ = (
        "model_name",
        "table_name",
        "primary_key",
        "key_type",
        "incrementing",
        "fillable",
        "guarded",
        "hidden",
        "visible",
        "casts",
        "dates",
        "appends",
        "with_related",
        "timestamps",
        "soft_deletes",
        "created_at_column",
        "updated_at_column",
        "deleted_at_column",
        "date_format",
        "connection",
        "per_page",
        "morph_name",
    )

    def __init__(
        self,
        model_name: str,
        meta: Optional[type] = None,
        table_attr: Optional[str] = None,
        parent: Optional["Options"] = None,
    ):
        def opt(name: str, default: Any) -> Any:
            value = getattr(meta, name, _MISSING) if meta else _MISSING
            if value is not _MISSING:
                return value
            if parent is not None:
                return getattr(parent, name)
            return default

        self.model_name = model_name
        self.table_name: str = table_attr or (
            getattr(meta, "table", None) or getattr(meta, "table_name", None)
            if meta else None
        ) or f"{snake_case(model_name)}s"
        self.primary_key: str = opt("primary_key", "id")
        self.key_type: str = opt("key_type", "int")
        self.incrementing: bool = opt("incrementing", True)
        self.fillable: List[str] = list(opt("fillable", []))
        self.guarded: List[str] = list(opt("guarded", ["*"]))
        self.hidden: List[str] = list(opt("hidden", []))
        self.visible: List[str] = list(opt("visible", []))
        self.casts: Dict[str, str] = dict(opt("casts", {}))
        self.appends: List[str] = list(opt("appends", []))
        self.with_related: List[Any] = list(opt("with_related", []))
        self.timestamps: bool = opt("timestamps", True)
        self.soft_deletes: bool = opt("soft_deletes", False)
        self.created_at_column: str = opt("created_at_column", "created_at")
        self.updated_at_column: str = opt("updated_at_column", "updated_at")
        self.deleted_at_column: str = opt("deleted_at_column", "deleted_at")
        self.date_format: str = opt("date_format", DEFAULT_DATE_FORMAT)
        self.connection: Optional[str] = opt("connection", None)
        self.per_page: int = int(opt("per_page", 15))
        self.morph_name: Optional[str] = getattr(meta, "morph_name", None) if meta else None

        dates = list(opt("dates", []))
        if self.timestamps:
            dates.extend([self.created_at_column, self.updated_at_column])
        if self.soft_deletes:
            dates.append(self.deleted_at_column)
        self.dates: List[str] = list(dict.fromkeys(dates))

        for column, cast_type in self.casts.items():
            if not is_valid_cast(cast_type):
                raise ConfigurationFault(
                    code="MODEL_CAST_INVALID",
                    message=f"Unknown cast '{cast_type}' for {model_name}.{column}",
                    metadata={"model": model_name, "column": column},
                )

    # ── Derived lookups ──────────────────────────────────────────────

    def cast_for(self, column: str) -> Optional[str]:
        """Effective cast for ``column``; date columns default to datetime."""
        cast_type = self.casts.get(column)
        if cast_type is None and column in self.dates:
            return "datetime"
        return cast_type

    def managed_columns(self) -> List[str]:
        """Columns the model layer writes itself, exempt from fillability."""
        columns: List[str] = []
        if self.timestamps:
            columns.extend([self.created_at_column, self.updated_at_column])
        if self.soft_deletes:
            columns.append(self.deleted_at_column)
        if not self.incrementing:
            columns.append(self.primary_key)
        return columns

    def __repr__(self) -> str:
        return f"<Options: {self.table_name}>"
