"""
Tessera Model — Active Record base class.

A model instance wraps one table row in an explicit attribute bag, tracks
which attributes changed since the last load or save, and persists itself
through its registry's connection.

Usage:
    class Post(Model):
        table = "posts"

        class Meta:
            fillable = ["title", "body", "user_id"]
            casts = {"published": "bool", "meta": "json"}
            soft_deletes = True

        @relation
        def author(self):
            return self.belongs_to(User, "user_id")

    registry.register(Post)
    post = Post.create({"title": "Hello", "user_id": 1})
    post["title"] = "Hello again"
    post.save()
    Post.query().where("published", True).with_related("author").get()
"""

from __future__ import annotations

import copy
import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, FrozenSet, Iterable, List, Optional, Set, Type, Union

from ..db.query import QueryBuilder
from ..faults import ModelFault, ModelNotFoundFault, ModelNotRegisteredFault, RelationFault
from .casts import cast_value, is_json_cast, serialize_value, to_storage
from .metaclass import ModelMeta
from .options import Options, snake_case
from .query import ModelQuery, parse_eager
from .relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    MorphMany,
    MorphOne,
    MorphTo,
    MorphToMany,
    Relation,
)

if TYPE_CHECKING:
    from ..db.connection import Connection
    from .registry import ModelRegistry

logger = logging.getLogger("tessera.models")

__all__ = ["Model"]


class Model(metaclass=ModelMeta):
    """
    Base class for Tessera models.

    Attributes are read and written through ``get_attribute`` /
    ``set_attribute`` (or ``model[key]``); relations are methods decorated
    with ``@relation``.
    """

    _meta: ClassVar[Options]
    _relation_names: ClassVar[FrozenSet[str]] = frozenset()
    _accessors: ClassVar[Dict[str, str]] = {}
    _mutators: ClassVar[Dict[str, str]] = {}
    _scopes: ClassVar[Dict[str, str]] = {}
    _registry: ClassVar[Optional["ModelRegistry"]] = None

    def __init__(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any):
        self._init_state()
        self.fill({**(attributes or {}), **kwargs})

    def _init_state(self) -> None:
        self._attributes: Dict[str, Any] = {}
        self._original: Dict[str, Any] = {}
        self._relations: Dict[str, Any] = {}
        self._changes: Dict[str, Any] = {}
        self._forced: Set[str] = set()
        self.exists = False
        self.was_recently_created = False

    @classmethod
    def boot(cls, registry: "ModelRegistry") -> None:
        """Hook run by ``ModelRegistry.register``; override to add scopes or observers."""

    # ── Class metadata ───────────────────────────────────────────────

    @classmethod
    def _get_registry(cls) -> "ModelRegistry":
        registry = cls.__dict__.get("_registry")
        if registry is None:
            raise ModelNotRegisteredFault(cls.__name__)
        return registry

    @classmethod
    def get_table(cls) -> str:
        return cls._meta.table_name

    @classmethod
    def get_key_name(cls) -> str:
        return cls._meta.primary_key

    @classmethod
    def get_foreign_key(cls) -> str:
        """Default foreign key other tables use to point here (``user_id``)."""
        return f"{snake_case(cls.__name__)}_{cls._meta.primary_key}"

    @classmethod
    def qualify_column(cls, column: str) -> str:
        if "." in column:
            return column
        return f"{cls._meta.table_name}.{column}"

    @classmethod
    def get_morph_class(cls) -> str:
        """Tag stored in ``*_type`` columns for this model."""
        registry = cls.__dict__.get("_registry")
        if registry is not None:
            return registry.morph_class_for(cls)
        return cls._meta.morph_name or cls.__name__

    @classmethod
    def get_connection(cls) -> "Connection":
        return cls._get_registry().connection_for(cls)

    @classmethod
    def get_connection_name(cls) -> str:
        return cls.get_connection().name

    @classmethod
    def fresh_timestamp(cls) -> datetime:
        return datetime.now().replace(microsecond=0)

    @classmethod
    def fresh_timestamp_string(cls) -> str:
        return cls.fresh_timestamp().strftime(cls._meta.date_format)

    @classmethod
    def prepare_for_storage(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        """Convert Python values (dicts, datetimes ...) into bindable ones."""
        fmt = cls._meta.date_format
        return {key: to_storage(cls._meta.cast_for(key), value, fmt) for key, value in values.items()}

    # ── Query entry points ───────────────────────────────────────────

    @classmethod
    def new_base_query(cls) -> QueryBuilder:
        """Plain builder on the model's table, no scopes or eager loads."""
        return cls.get_connection().table(cls._meta.table_name)

    @classmethod
    def query(cls) -> ModelQuery:
        return ModelQuery(cls, cls.new_base_query(), parse_eager(cls._meta.with_related))

    @classmethod
    def all(cls, *columns: Any) -> List["Model"]:
        return cls.query().get(*columns)

    @classmethod
    def find(cls, id: Any, *columns: Any) -> Union["Model", List["Model"], None]:
        return cls.query().find(id, *columns)

    @classmethod
    def find_many(cls, ids: Iterable[Any], *columns: Any) -> List["Model"]:
        return cls.query().find_many(ids, *columns)

    @classmethod
    def find_or_fail(cls, id: Any, *columns: Any) -> Union["Model", List["Model"]]:
        return cls.query().find_or_fail(id, *columns)

    @classmethod
    def first(cls) -> Optional["Model"]:
        return cls.query().first()

    @classmethod
    def first_or_fail(cls) -> "Model":
        return cls.query().first_or_fail()

    @classmethod
    def where(cls, *args: Any, **kwargs: Any) -> ModelQuery:
        return cls.query().where(*args, **kwargs)

    @classmethod
    def with_related(cls, *relations: Any) -> ModelQuery:
        return cls.query().with_related(*relations)

    @classmethod
    def with_trashed(cls) -> ModelQuery:
        return cls.query().with_trashed()

    @classmethod
    def only_trashed(cls) -> ModelQuery:
        return cls.query().only_trashed()

    @classmethod
    def paginate(cls, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        return cls.query().paginate(page, per_page)

    @classmethod
    def chunk(cls, count: int, callback: Callable[[List["Model"]], Any]) -> bool:
        return cls.query().chunk(count, callback)

    @classmethod
    def count(cls) -> int:
        return cls.query().count()

    @classmethod
    def create(cls, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "Model":
        """Fill a new instance and save it."""
        instance = cls(attributes, **kwargs)
        instance.save()
        return instance

    @classmethod
    def first_or_create(cls, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        return cls.query().first_or_create(attributes, values)

    @classmethod
    def first_or_new(cls, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        return cls.query().first_or_new(attributes, values)

    @classmethod
    def update_or_create(cls, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        return cls.query().update_or_create(attributes, values)

    @classmethod
    def destroy(cls, *ids: Any) -> int:
        """Load and delete each id (firing events); returns how many were deleted."""
        flat: List[Any] = []
        for id in ids:
            if isinstance(id, (list, tuple, set)):
                flat.extend(id)
            else:
                flat.append(id)
        if not flat:
            return 0
        deleted = 0
        for model in cls.query().find_many(flat):
            if model.delete():
                deleted += 1
        return deleted

    # ── Hydration ────────────────────────────────────────────────────

    @classmethod
    def new_from_row(cls, row: Dict[str, Any]) -> "Model":
        """Existing-row instance; fills nothing and fires no events."""
        instance = cls.__new__(cls)
        instance._init_state()
        instance._attributes = dict(row)
        instance.sync_original()
        instance.exists = True
        return instance

    @classmethod
    def hydrate(cls, rows: Iterable[Dict[str, Any]]) -> List["Model"]:
        return [cls.new_from_row(row) for row in rows]

    # ── Attribute bag ────────────────────────────────────────────────

    def get_key(self) -> Any:
        return self._attributes.get(self._meta.primary_key)

    def get_raw(self, key: str, default: Any = None) -> Any:
        """Stored value for ``key`` with no casts or accessors."""
        return self._attributes.get(key, default)

    def get_attribute(self, key: str) -> Any:
        """
        Read ``key``.

        Stored attributes are cast, then passed through any ``@accessor``.
        Otherwise a declared ``@relation`` is resolved and memoised.
        Unknown keys return None.
        """
        if key in self._attributes or key in self._accessors:
            value = self._attributes.get(key)
            cast_type = self._meta.cast_for(key)
            if cast_type is not None and value is not None:
                value = cast_value(cast_type, value, self._meta.date_format)
                if key in self._attributes and is_json_cast(cast_type):
                    # Decoded containers are kept so in-place edits show up as dirty.
                    self._attributes[key] = value
            accessor_name = self._accessors.get(key)
            if accessor_name is not None:
                value = getattr(self, accessor_name)(value)
            return value
        if key in self._relations:
            return self._relations[key]
        if key in self._relation_names:
            return self.get_relation_value(key)
        return None

    def set_attribute(self, key: str, value: Any) -> "Model":
        """Write ``key``; a declared ``@mutator`` transforms the value first."""
        mutator_name = self._mutators.get(key)
        if mutator_name is not None:
            value = getattr(self, mutator_name)(value)
        self._attributes[key] = value
        return self

    def __getitem__(self, key: str) -> Any:
        return self.get_attribute(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set_attribute(key, value)

    def __contains__(self, key: str) -> bool:
        return key in self._attributes or key in self._relations

    def get_attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)

    def set_raw_attributes(self, attributes: Dict[str, Any], sync: bool = False) -> "Model":
        self._attributes = dict(attributes)
        if sync:
            self.sync_original()
        return self

    def get_original(self, key: Optional[str] = None, default: Any = None) -> Any:
        if key is None:
            return dict(self._original)
        return self._original.get(key, default)

    # ── Mass assignment ──────────────────────────────────────────────

    def is_fillable(self, key: str) -> bool:
        opts = self._meta
        if key in opts.fillable:
            return True
        if self.is_guarded(key):
            return False
        return not opts.fillable and not key.startswith("_")

    def is_guarded(self, key: str) -> bool:
        return self.totally_guarded() or key in self._meta.guarded

    def totally_guarded(self) -> bool:
        return self._meta.guarded == ["*"]

    def fill(self, attributes: Dict[str, Any]) -> "Model":
        """Set the fillable keys of ``attributes``; the rest are dropped silently."""
        for key, value in attributes.items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
        return self

    def force_fill(self, attributes: Dict[str, Any]) -> "Model":
        """Set every key, bypassing the fillable/guarded checks."""
        for key, value in attributes.items():
            self.set_attribute(key, value)
        self._forced.update(attributes)
        return self

    def _is_persistable(self, key: str) -> bool:
        return key in self._forced or key in self._meta.managed_columns() or self.is_fillable(key)

    # ── Dirty tracking ───────────────────────────────────────────────

    def sync_original(self) -> "Model":
        self._original = copy.deepcopy(self._attributes)
        return self

    def _original_is_equivalent(self, key: str) -> bool:
        if key not in self._original:
            return False
        current = self._attributes.get(key)
        original = self._original[key]
        if current == original:
            return True
        if current is None or original is None:
            return False
        cast_type = self._meta.cast_for(key)
        if cast_type is not None:
            try:
                fmt = self._meta.date_format
                return cast_value(cast_type, current, fmt) == cast_value(cast_type, original, fmt)
            except (TypeError, ValueError):
                return False
        if isinstance(current, (int, float, Decimal, str)) and isinstance(original, (int, float, Decimal, str)):
            try:
                return Decimal(str(current)) == Decimal(str(original))
            except InvalidOperation:
                return False
        return False

    def get_dirty(self) -> Dict[str, Any]:
        """Attributes changed since the last sync that would be persisted."""
        return {
            key: value
            for key, value in self._attributes.items()
            if not self._original_is_equivalent(key) and self._is_persistable(key)
        }

    def is_dirty(self, *keys: str) -> bool:
        dirty = self.get_dirty()
        if not keys:
            return bool(dirty)
        return any(key in dirty for key in keys)

    def is_clean(self, *keys: str) -> bool:
        return not self.is_dirty(*keys)

    def get_changes(self) -> Dict[str, Any]:
        """Attributes written by the last update."""
        return dict(self._changes)

    def was_changed(self, *keys: str) -> bool:
        if not keys:
            return bool(self._changes)
        return any(key in self._changes for key in keys)

    # ── Persistence ──────────────────────────────────────────────────

    def _fire(self, event: str) -> bool:
        return type(self)._get_registry().events.dispatch(event, self)

    def _key_query(self) -> QueryBuilder:
        key_name = self._meta.primary_key
        key = self._original.get(key_name, self.get_key())
        return self.new_base_query().where(key_name, key)

    def _update_timestamps(self) -> None:
        opts = self._meta
        now = self.fresh_timestamp_string()
        if not self.is_dirty(opts.updated_at_column):
            self._attributes[opts.updated_at_column] = now
        if not self.exists and not self.is_dirty(opts.created_at_column):
            self._attributes[opts.created_at_column] = now

    def save(self) -> bool:
        """
        Insert or update the row.

        Returns False when a ``saving``/``creating``/``updating`` observer
        halted the operation.
        """
        if not self._fire("saving"):
            return False
        saved = self.perform_update() if self.exists else self.perform_insert()
        if saved:
            self._fire("saved")
            self.sync_original()
        return saved

    def perform_insert(self) -> bool:
        if not self._fire("creating"):
            return False
        opts = self._meta
        if opts.timestamps:
            self._update_timestamps()

        attributes = {k: v for k, v in self._attributes.items() if self._is_persistable(k)}
        values = self.prepare_for_storage(attributes)
        query = self.new_base_query()
        if opts.incrementing:
            new_id = query.insert_get_id(values, sequence=opts.primary_key)
            self._attributes[opts.primary_key] = new_id
        else:
            query.insert([values])

        self.exists = True
        self.was_recently_created = True
        self._changes = {}
        logger.debug(f"Inserted {type(self).__name__} {self.get_key()!r}")
        self._fire("created")
        return True

    def perform_update(self) -> bool:
        """Write the dirty attributes; no dirty attributes means no SQL."""
        if not self.get_dirty():
            return True
        if not self._fire("updating"):
            return False
        if self._meta.timestamps:
            self._update_timestamps()
        dirty = self.get_dirty()
        self._key_query().update(self.prepare_for_storage(dirty))
        self._changes = dirty
        self._fire("updated")
        return True

    def update(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> bool:
        """Fill and save an existing model."""
        if not self.exists:
            return False
        self.fill({**(attributes or {}), **kwargs})
        return self.save()

    def touch(self) -> bool:
        """Bump ``updated_at`` and save."""
        if not self._meta.timestamps:
            return False
        self._attributes[self._meta.updated_at_column] = self.fresh_timestamp_string()
        return self.save()

    def delete(self) -> bool:
        """
        Delete the row, or stamp ``deleted_at`` for soft-deleting models.

        Returns False for unsaved models or when a ``deleting`` observer halts.
        """
        if not self.exists:
            return False
        if not self._fire("deleting"):
            return False
        if self._meta.soft_deletes:
            self._run_soft_delete()
        else:
            self._perform_delete()
        self._fire("deleted")
        return True

    def force_delete(self) -> bool:
        """Remove the row even for soft-deleting models."""
        if not self.exists:
            return False
        if not self._fire("deleting"):
            return False
        self._perform_delete()
        self._fire("deleted")
        return True

    def _perform_delete(self) -> None:
        self._key_query().delete()
        self.exists = False

    def _run_soft_delete(self) -> None:
        opts = self._meta
        now = self.fresh_timestamp_string()
        columns = {opts.deleted_at_column: now}
        if opts.timestamps:
            columns[opts.updated_at_column] = now
        self._key_query().update(columns)
        for key, value in columns.items():
            self._attributes[key] = value
            self._original[key] = value

    def restore(self) -> bool:
        """Clear ``deleted_at``; fires ``restoring`` / ``restored``."""
        opts = self._meta
        if not opts.soft_deletes:
            raise ModelFault(
                code="MODEL_NOT_SOFT_DELETING",
                message=f"{type(self).__name__} does not use soft deletes",
                metadata={"model": type(self).__name__},
            )
        if not self._fire("restoring"):
            return False
        stamped = self._attributes.get(opts.deleted_at_column)
        self._attributes[opts.deleted_at_column] = None
        self.exists = True
        if not self.save():
            self._attributes[opts.deleted_at_column] = stamped
            return False
        self._fire("restored")
        return True

    def trashed(self) -> bool:
        return self._meta.soft_deletes and self._attributes.get(self._meta.deleted_at_column) is not None

    def refresh(self) -> "Model":
        """Reload attributes (and loaded relations) from the database."""
        if not self.exists:
            return self
        row = (
            self.query()
            .without_global_scopes()
            .to_base()
            .where(self._meta.primary_key, self.get_key())
            .first()
        )
        if row is None:
            raise ModelNotFoundFault(type(self).__name__, self.get_key())
        self.set_raw_attributes(row, sync=True)
        loaded = [name for name in self._relations if name in self._relation_names]
        self._relations = {}
        if loaded:
            self.load(*loaded)
        return self

    def fresh(self, *relations: Any) -> Optional["Model"]:
        """A newly loaded copy of this row, or None if it is gone."""
        if not self.exists:
            return None
        return (
            self.query()
            .without_global_scopes()
            .with_related(*relations)
            .where(self.qualify_column(self._meta.primary_key), self.get_key())
            .first()
        )

    def replicate(self, except_: Optional[Iterable[str]] = None) -> "Model":
        """Unsaved copy without the key and timestamps."""
        opts = self._meta
        excluded = {opts.primary_key, opts.created_at_column, opts.updated_at_column}
        if opts.soft_deletes:
            excluded.add(opts.deleted_at_column)
        excluded.update(except_ or ())
        instance = type(self).__new__(type(self))
        instance._init_state()
        instance._attributes = copy.deepcopy({k: v for k, v in self._attributes.items() if k not in excluded})
        instance._forced = set(instance._attributes)
        instance._relations = dict(self._relations)
        return instance

    def is_same(self, other: Optional["Model"]) -> bool:
        return (
            isinstance(other, Model)
            and other.get_key() is not None
            and self.get_key() == other.get_key()
            and self.get_table() == other.get_table()
            and self.get_connection_name() == other.get_connection_name()
        )

    # ── Relations ────────────────────────────────────────────────────

    def _resolve_related(self, related: Union[str, Type["Model"]]) -> Type["Model"]:
        if isinstance(related, str):
            return type(self)._get_registry().resolve(related)
        return related

    def has_one(self, related: Union[str, Type["Model"]], foreign_key: Optional[str] = None, local_key: Optional[str] = None) -> HasOne:
        related = self._resolve_related(related)
        return HasOne(self, related, foreign_key or self.get_foreign_key(), local_key or self.get_key_name())

    def has_many(self, related: Union[str, Type["Model"]], foreign_key: Optional[str] = None, local_key: Optional[str] = None) -> HasMany:
        related = self._resolve_related(related)
        return HasMany(self, related, foreign_key or self.get_foreign_key(), local_key or self.get_key_name())

    def belongs_to(self, related: Union[str, Type["Model"]], foreign_key: Optional[str] = None, owner_key: Optional[str] = None) -> BelongsTo:
        related = self._resolve_related(related)
        return BelongsTo(self, related, foreign_key or related.get_foreign_key(), owner_key or related.get_key_name())

    def belongs_to_many(
        self,
        related: Union[str, Type["Model"]],
        table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None,
    ) -> BelongsToMany:
        related = self._resolve_related(related)
        if table is None:
            # post + tag -> post_tag
            table = "_".join(sorted([snake_case(type(self).__name__), snake_case(related.__name__)]))
        return BelongsToMany(
            self,
            related,
            table,
            foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key or related.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or related.get_key_name(),
        )

    def morph_one(self, related, name: str, type: Optional[str] = None, id: Optional[str] = None, local_key: Optional[str] = None) -> MorphOne:
        related = self._resolve_related(related)
        return MorphOne(self, related, type or f"{name}_type", id or f"{name}_id", local_key or self.get_key_name())

    def morph_many(self, related, name: str, type: Optional[str] = None, id: Optional[str] = None, local_key: Optional[str] = None) -> MorphMany:
        related = self._resolve_related(related)
        return MorphMany(self, related, type or f"{name}_type", id or f"{name}_id", local_key or self.get_key_name())

    def morph_to(self, name: str, type: Optional[str] = None, id: Optional[str] = None, owner_key: Optional[str] = None) -> MorphTo:
        return MorphTo(self, name, type or f"{name}_type", id or f"{name}_id", owner_key)

    def morph_to_many(
        self,
        related,
        name: str,
        table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None,
    ) -> MorphToMany:
        related = self._resolve_related(related)
        return MorphToMany(
            self,
            related,
            name,
            table or f"{name}s",
            foreign_pivot_key or f"{name}_id",
            related_pivot_key or related.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or related.get_key_name(),
        )

    def morphed_by_many(
        self,
        related,
        name: str,
        table: Optional[str] = None,
        foreign_pivot_key: Optional[str] = None,
        related_pivot_key: Optional[str] = None,
        parent_key: Optional[str] = None,
        related_key: Optional[str] = None,
    ) -> MorphToMany:
        related = self._resolve_related(related)
        return MorphToMany(
            self,
            related,
            name,
            table or f"{name}s",
            foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key or f"{name}_id",
            parent_key or self.get_key_name(),
            related_key or related.get_key_name(),
            inverse=True,
        )

    def get_relation_instance(self, name: str) -> Relation:
        """Build the declared relation ``name`` for this instance."""
        if name not in self._relation_names:
            raise RelationFault(type(self).__name__, f"Call to undefined relationship '{name}'")
        rel = getattr(self, name)()
        if not isinstance(rel, Relation):
            raise RelationFault(type(self).__name__, f"'{name}' must return a Relation, got {type(rel).__name__}")
        return rel

    def get_relation_value(self, name: str) -> Any:
        """Resolve ``name`` and memoise the result."""
        results = self.get_relation_instance(name).get_results()
        self._relations[name] = results
        return results

    def get_relation(self, name: str) -> Any:
        return self._relations.get(name)

    def set_relation(self, name: str, value: Any) -> "Model":
        self._relations[name] = value
        return self

    def unset_relation(self, name: str) -> "Model":
        self._relations.pop(name, None)
        return self

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def get_relations(self) -> Dict[str, Any]:
        return dict(self._relations)

    def load(self, *relations: Any) -> "Model":
        """Eager load relations onto this already-fetched instance."""
        ModelQuery(type(self), self.new_base_query(), parse_eager(relations)).eager_load_relations([self])
        return self

    def load_missing(self, *relations: str) -> "Model":
        missing = [name for name in relations if not self.relation_loaded(name.partition(".")[0])]
        if missing:
            self.load(*missing)
        return self

    # ── Serialisation ────────────────────────────────────────────────

    def _is_visible(self, key: str) -> bool:
        if self._meta.visible:
            return key in self._meta.visible
        return key not in self._meta.hidden

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialise to a plain dict: visible attributes (cast, accessor-
        transformed, dates formatted), ``appends`` and loaded relations.
        """
        fmt = self._meta.date_format
        data: Dict[str, Any] = {}
        for key in list(self._attributes) + [k for k in self._meta.appends if k not in self._attributes]:
            if self._is_visible(key):
                data[key] = serialize_value(self.get_attribute(key), fmt)
        for name, value in self._relations.items():
            if self._is_visible(name):
                data[name] = _serialize_relation(value, fmt)
        return data

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._meta.primary_key}={self.get_key()!r}>"


def _serialize_relation(value: Any, fmt: str) -> Any:
    if isinstance(value, Model):
        return value.to_dict()
    if isinstance(value, list):
        return [_serialize_relation(v, fmt) for v in value]
    if isinstance(value, dict):
        return {k: serialize_value(v, fmt) for k, v in value.items()}
    return value
