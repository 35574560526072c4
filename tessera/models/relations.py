"""
Tessera Models — relationship resolvers.

Each ``Relation`` knows how to load its results for one owner (one
query) and for a batch of owners (one WHERE-IN query, then distribution
by key). Relations behave like queries: constraint methods such as
``where`` or ``latest`` return a new relation and leave the original
untouched.

Kinds:
    HasOne / HasMany            related.fk = owner.local_key
    BelongsTo                   owner.fk = related.owner_key
    BelongsToMany               through a pivot table (fpk, rpk)
    MorphOne / MorphMany        related.{name}_id + related.{name}_type
    MorphTo                     owner.{name}_type names the related model
    MorphToMany                 pivot ({name}_id, rpk) + {name}_type
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, Iterable, List, Optional, Type, Union

from ..db.query import QueryBuilder
from ..faults import RelationFault
from .query import EagerSpec, ModelQuery, apply_constraint, parse_eager

if TYPE_CHECKING:
    from .base import Model

__all__ = [
    "Relation",
    "HasOneOrMany",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "MorphOneOrMany",
    "MorphOne",
    "MorphMany",
    "MorphTo",
    "MorphToMany",
]

# ModelQuery methods exposed on relations as constraints.
_CONSTRAINT_METHODS = (
    "where",
    "or_where",
    "where_column",
    "where_in",
    "where_not_in",
    "where_null",
    "where_not_null",
    "where_between",
    "where_not_between",
    "where_like",
    "where_raw",
    "order_by",
    "order_by_desc",
    "order_by_raw",
    "latest",
    "oldest",
    "limit",
    "take",
    "offset",
    "skip",
    "with_trashed",
    "only_trashed",
    "without_global_scope",
    "scope",
)


def _key(value: Any) -> Optional[Hashable]:
    """Dictionary key for matching; drivers disagree on int vs str ids."""
    return None if value is None else str(value)


def _unique(values: Iterable[Any]) -> List[Any]:
    seen = set()
    out = []
    for value in values:
        k = _key(value)
        if k is None or k in seen:
            continue
        seen.add(k)
        out.append(value)
    return out


class Relation:
    """
    Base relationship resolver.

    Subclasses implement ``add_constraints`` (single owner),
    ``eager_keys`` / ``add_eager_constraints`` / ``match`` (batched) and
    set ``many`` to pick between a list and an optional model.
    """

    many: bool = False

    def __init__(self, parent: "Model", related: Optional[Type["Model"]]):
        self.parent = parent
        self.related = related
        self.relation_name: Optional[str] = None
        self._constraints: List[Callable[[ModelQuery], Any]] = []
        self._eager: List[EagerSpec] = []

    def _copy(self) -> "Relation":
        new = copy.copy(self)
        new._constraints = list(self._constraints)
        new._eager = list(self._eager)
        return new

    # ── Constraint chaining ──────────────────────────────────────────

    def constrain(self, constraint: Callable[[ModelQuery], Any]) -> "Relation":
        """Add a callback applied to the related query."""
        new = self._copy()
        new._constraints.append(constraint)
        return new

    def with_related(self, *relations: Any) -> "Relation":
        """Eager load relations of the related models."""
        new = self._copy()
        new._eager.extend(parse_eager(relations))
        return new

    # ── Query construction ───────────────────────────────────────────

    def base_query(self) -> ModelQuery:
        return self.related.query()

    def add_constraints(self, query: ModelQuery) -> ModelQuery:
        raise NotImplementedError

    def has_parent_key(self) -> bool:
        return True

    def eager_keys(self, models: List["Model"]) -> List[Any]:
        raise NotImplementedError

    def add_eager_constraints(self, query: ModelQuery, keys: List[Any]) -> ModelQuery:
        raise NotImplementedError

    def match(self, models: List["Model"], results: List["Model"], name: str) -> None:
        raise NotImplementedError

    def _finish(self, query: ModelQuery) -> ModelQuery:
        for constraint in self._constraints:
            query = apply_constraint(query, constraint)
        if self._eager:
            query = query.with_related(*[{path: fn} if fn else path for path, fn in self._eager])
        return query

    def get_query(self) -> ModelQuery:
        """The related query for the current owner, constraints applied."""
        return self._finish(self.add_constraints(self.base_query()))

    def _after_fetch(self, models: List["Model"]) -> List["Model"]:
        return models

    # ── Terminal ─────────────────────────────────────────────────────

    def get(self) -> List["Model"]:
        if not self.has_parent_key():
            return []
        return self._after_fetch(self.get_query().get())

    def first(self) -> Optional["Model"]:
        if not self.has_parent_key():
            return None
        models = self._after_fetch(self.get_query().limit(1).get())
        return models[0] if models else None

    def count(self) -> int:
        if not self.has_parent_key():
            return 0
        return self.get_query().count()

    def exists(self) -> bool:
        return self.has_parent_key() and self.get_query().exists()

    def paginate(self, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        result = self.get_query().paginate(page, per_page)
        result["data"] = self._after_fetch(result["data"])
        return result

    def initial_value(self) -> Any:
        return [] if self.many else None

    def get_results(self) -> Any:
        """Results for the owner: a list for to-many, else a model or None."""
        return self.get() if self.many else self.first()

    def eager_load(self, models: List["Model"], name: str) -> None:
        """Load this relation for every model in one query."""
        keys = self.eager_keys(models)
        results: List["Model"] = []
        if keys:
            query = self._finish(self.add_eager_constraints(self.base_query(), keys))
            results = self._after_fetch(query.get())
        self.match(models, results, name)

    def _name(self) -> str:
        return self.relation_name or type(self).__name__

    def __repr__(self) -> str:
        related = self.related.__name__ if self.related is not None else "?"
        return f"<{type(self).__name__} {type(self.parent).__name__}.{self._name()} -> {related}>"


def _constraint_method(name: str) -> Callable:
    def method(self: Relation, *args: Any, **kwargs: Any) -> Relation:
        return self.constrain(lambda query: getattr(query, name)(*args, **kwargs))

    method.__name__ = name
    method.__qualname__ = f"Relation.{name}"
    method.__doc__ = f"Constrain the related query with ``ModelQuery.{name}``."
    return method


for _name in _CONSTRAINT_METHODS:
    setattr(Relation, _name, _constraint_method(_name))
del _name


# ── Has one / has many ───────────────────────────────────────────────


class HasOneOrMany(Relation):
    def __init__(self, parent: "Model", related: Type["Model"], foreign_key: str, local_key: str):
        super().__init__(parent, related)
        self.foreign_key = foreign_key
        self.local_key = local_key

    def qualified_foreign_key(self) -> str:
        return self.related.qualify_column(self.foreign_key)

    def parent_key_value(self) -> Any:
        return self.parent.get_raw(self.local_key)

    def has_parent_key(self) -> bool:
        return self.parent_key_value() is not None

    def add_constraints(self, query: ModelQuery) -> ModelQuery:
        return query.where(self.qualified_foreign_key(), self.parent_key_value())

    def eager_keys(self, models: List["Model"]) -> List[Any]:
        return _unique(m.get_raw(self.local_key) for m in models)

    def add_eager_constraints(self, query: ModelQuery, keys: List[Any]) -> ModelQuery:
        return query.where_in(self.qualified_foreign_key(), keys)

    def match(self, models: List["Model"], results: List["Model"], name: str) -> None:
        buckets: Dict[Any, List["Model"]] = {}
        for result in results:
            buckets.setdefault(_key(result.get_raw(self.foreign_key)), []).append(result)
        for model in models:
            found = buckets.get(_key(model.get_raw(self.local_key)), [])
            model.set_relation(name, list(found) if self.many else (found[0] if found else None))

    # ── Writes ───────────────────────────────────────────────────────

    def _owner_keys(self) -> Dict[str, Any]:
        return {self.foreign_key: self.parent_key_value()}

    def make(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "Model":
        """Unsaved related model with the owner key set."""
        instance = self.related(attributes, **kwargs)
        instance.force_fill(self._owner_keys())
        return instance

    def create(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "Model":
        if not self.has_parent_key():
            raise RelationFault(type(self.parent).__name__, f"Cannot create through '{self._name()}' on an unsaved owner")
        instance = self.make(attributes, **kwargs)
        instance.save()
        return instance

    def create_many(self, records: Iterable[Dict[str, Any]]) -> List["Model"]:
        return [self.create(record) for record in records]

    def save(self, model: "Model") -> "Model":
        """Point ``model`` at the owner and save it."""
        model.force_fill(self._owner_keys())
        model.save()
        return model


class HasOne(HasOneOrMany):
    many = False


class HasMany(HasOneOrMany):
    many = True


# ── Belongs to ───────────────────────────────────────────────────────


class BelongsTo(Relation):
    many = False

    def __init__(self, child: "Model", related: Type["Model"], foreign_key: str, owner_key: str):
        super().__init__(child, related)
        self.foreign_key = foreign_key
        self.owner_key = owner_key

    @property
    def child(self) -> "Model":
        return self.parent

    def has_parent_key(self) -> bool:
        return self.child.get_raw(self.foreign_key) is not None

    def add_constraints(self, query: ModelQuery) -> ModelQuery:
        return query.where(self.related.qualify_column(self.owner_key), self.child.get_raw(self.foreign_key))

    def eager_keys(self, models: List["Model"]) -> List[Any]:
        return _unique(m.get_raw(self.foreign_key) for m in models)

    def add_eager_constraints(self, query: ModelQuery, keys: List[Any]) -> ModelQuery:
        return query.where_in(self.related.qualify_column(self.owner_key), keys)

    def match(self, models: List["Model"], results: List["Model"], name: str) -> None:
        owners = {_key(r.get_raw(self.owner_key)): r for r in results}
        for model in models:
            model.set_relation(name, owners.get(_key(model.get_raw(self.foreign_key))))

    def associate(self, model: Union["Model", Any]) -> "Model":
        """Point the child at ``model`` (or a raw key); does not save."""
        from .base import Model

        key = model.get_raw(self.owner_key) if isinstance(model, Model) else model
        self.child.force_fill({self.foreign_key: key})
        if isinstance(model, Model):
            self.child.set_relation(self._name(), model)
        else:
            self.child.unset_relation(self._name())
        return self.child

    def dissociate(self) -> "Model":
        self.child.force_fill({self.foreign_key: None})
        self.child.set_relation(self._name(), None)
        return self.child


# ── Belongs to many ──────────────────────────────────────────────────


class BelongsToMany(Relation):
    """
    Many-to-many through a pivot table.

    Loaded models carry the pivot row as their ``pivot`` relation::

        for tag in post.tags().with_pivot("added_by").get():
            tag["pivot"]["added_by"]
    """

    many = True

    def __init__(
        self,
        parent: "Model",
        related: Type["Model"],
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
    ):
        super().__init__(parent, related)
        self.table = table
        self.foreign_pivot_key = foreign_pivot_key
        self.related_pivot_key = related_pivot_key
        self.parent_key = parent_key
        self.related_key = related_key
        self._pivot_columns: List[str] = []

    def _copy(self) -> "BelongsToMany":
        new = super()._copy()
        new._pivot_columns = list(self._pivot_columns)
        return new

    def with_pivot(self, *columns: str) -> "BelongsToMany":
        """Also load these pivot columns into ``pivot``."""
        new = self._copy()
        for column in columns:
            if column not in new._pivot_columns:
                new._pivot_columns.append(column)
        return new

    def _pivot(self, column: str) -> str:
        return f"{self.table}.{column}"

    def _morph_pivot_values(self) -> Dict[str, Any]:
        return {}

    def parent_key_value(self) -> Any:
        return self.parent.get_raw(self.parent_key)

    def has_parent_key(self) -> bool:
        return self.parent_key_value() is not None

    def base_query(self) -> ModelQuery:
        pivot_columns = [self.foreign_pivot_key, self.related_pivot_key] + [
            c for c in self._pivot_columns if c not in (self.foreign_pivot_key, self.related_pivot_key)
        ]
        columns = [self.related.qualify_column("*")] + [
            f"{self._pivot(c)} as pivot_{c}" for c in pivot_columns
        ]
        query = (
            self.related.query()
            .select(*columns)
            .join(self.table, self.related.qualify_column(self.related_key), "=", self._pivot(self.related_pivot_key))
        )
        for column, value in self._morph_pivot_values().items():
            query = query.where(self._pivot(column), value)
        return query

    def add_constraints(self, query: ModelQuery) -> ModelQuery:
        return query.where(self._pivot(self.foreign_pivot_key), self.parent_key_value())

    def eager_keys(self, models: List["Model"]) -> List[Any]:
        return _unique(m.get_raw(self.parent_key) for m in models)

    def add_eager_constraints(self, query: ModelQuery, keys: List[Any]) -> ModelQuery:
        return query.where_in(self._pivot(self.foreign_pivot_key), keys)

    def _after_fetch(self, models: List["Model"]) -> List["Model"]:
        for model in models:
            attributes = model.get_attributes()
            pivot = {k[len("pivot_"):]: v for k, v in attributes.items() if k.startswith("pivot_")}
            model.set_raw_attributes({k: v for k, v in attributes.items() if not k.startswith("pivot_")}, sync=True)
            model.set_relation("pivot", pivot)
        return models

    def match(self, models: List["Model"], results: List["Model"], name: str) -> None:
        buckets: Dict[Any, List["Model"]] = {}
        for result in results:
            pivot = result.get_relation("pivot") or {}
            buckets.setdefault(_key(pivot.get(self.foreign_pivot_key)), []).append(result)
        for model in models:
            model.set_relation(name, list(buckets.get(_key(model.get_raw(self.parent_key)), [])))

    # ── Pivot writes ─────────────────────────────────────────────────

    def _pivot_query(self) -> QueryBuilder:
        query = self.parent.get_connection().table(self.table).where(self.foreign_pivot_key, self.parent_key_value())
        for column, value in self._morph_pivot_values().items():
            query = query.where(column, value)
        return query

    def _parse_ids(self, ids: Any) -> Dict[Any, Dict[str, Any]]:
        from .base import Model

        if isinstance(ids, dict):
            return {k: dict(v or {}) for k, v in ids.items()}
        if isinstance(ids, Model):
            return {ids.get_raw(self.related_key): {}}
        if isinstance(ids, (list, tuple, set)):
            parsed: Dict[Any, Dict[str, Any]] = {}
            for item in ids:
                parsed.update(self._parse_ids(item))
            return parsed
        return {ids: {}}

    def _require_parent_key(self, action: str) -> Any:
        key = self.parent_key_value()
        if key is None:
            raise RelationFault(type(self.parent).__name__, f"Cannot {action} '{self._name()}' on an unsaved owner")
        return key

    def attach(self, ids: Any, attributes: Optional[Dict[str, Any]] = None) -> None:
        """
        Insert pivot rows linking the owner to ``ids``.

        ``ids`` may be a key, a model, a list of either, or a dict of
        ``{key: extra pivot columns}``.
        """
        parent_key = self._require_parent_key("attach")
        records = []
        for related_id, extra in self._parse_ids(ids).items():
            record = {self.foreign_pivot_key: parent_key, self.related_pivot_key: related_id}
            record.update(self._morph_pivot_values())
            record.update(attributes or {})
            record.update(extra)
            records.append(record)
        if records:
            self.parent.get_connection().table(self.table).insert(records)

    def detach(self, ids: Any = None) -> int:
        """Delete pivot rows for ``ids`` (all of the owner's when None)."""
        self._require_parent_key("detach")
        query = self._pivot_query()
        if ids is not None:
            keys = list(self._parse_ids(ids))
            if not keys:
                return 0
            query = query.where_in(self.related_pivot_key, keys)
        return query.delete()

    def sync(self, ids: Any) -> Dict[str, List[Any]]:
        """
        Make the pivot hold exactly ``ids`` for the owner.

        Returns ``{"attached": [...], "detached": [...]}``.
        """
        self._require_parent_key("sync")
        wanted = self._parse_ids(ids)
        wanted_keys = {_key(k) for k in wanted}
        current = self._pivot_query().pluck(self.related_pivot_key)
        current_keys = {_key(c) for c in current}

        detached = [c for c in current if _key(c) not in wanted_keys]
        if detached:
            self.detach(detached)
        attach = {k: v for k, v in wanted.items() if _key(k) not in current_keys}
        if attach:
            self.attach(attach)
        return {"attached": list(attach), "detached": detached}

    def toggle(self, ids: Any) -> Dict[str, List[Any]]:
        """Attach the ids that are absent and detach the ones present."""
        self._require_parent_key("toggle")
        wanted = self._parse_ids(ids)
        current_keys = {_key(c) for c in self._pivot_query().pluck(self.related_pivot_key)}
        detached = [k for k in wanted if _key(k) in current_keys]
        attach = {k: v for k, v in wanted.items() if _key(k) not in current_keys}
        if detached:
            self.detach(detached)
        if attach:
            self.attach(attach)
        return {"attached": list(attach), "detached": detached}


# ── Polymorphic one / many ───────────────────────────────────────────


class MorphOneOrMany(HasOneOrMany):
    def __init__(
        self,
        parent: "Model",
        related: Type["Model"],
        morph_type: str,
        morph_id: str,
        local_key: str,
    ):
        super().__init__(parent, related, morph_id, local_key)
        self.morph_type = morph_type
        self.morph_class = parent.get_morph_class()

    def add_constraints(self, query: ModelQuery) -> ModelQuery:
        query = super().add_constraints(query)
        return query.where(self.related.qualify_column(self.morph_type), self.morph_class)

    def add_eager_constraints(self, query: ModelQuery, keys: List[Any]) -> ModelQuery:
        query = super().add_eager_constraints(query, keys)
        return query.where(self.related.qualify_column(self.morph_type), self.morph_class)

    def _owner_keys(self) -> Dict[str, Any]:
        keys = super()._owner_keys()
        keys[self.morph_type] = self.morph_class
        return keys


class MorphOne(MorphOneOrMany):
    many = False


class MorphMany(MorphOneOrMany):
    many = True


# ── Polymorphic inverse ──────────────────────────────────────────────


class MorphTo(Relation):
    """
    Inverse of a polymorphic relation: the owner's ``{name}_type`` column
    says which model to load. Eager loading runs one query per type.
    """

    many = False

    def __init__(self, child: "Model", name: str, morph_type: str, morph_id: str, owner_key: Optional[str] = None):
        super().__init__(child, None)
        self.name = name
        self.morph_type = morph_type
        self.morph_id = morph_id
        self.owner_key = owner_key
        self.relation_name = name

    @property
    def child(self) -> "Model":
        return self.parent

    def _registry(self):
        return type(self.child)._get_registry()

    def _target(self, tag: str):
        related = self._registry().resolve_morph_class(tag)
        return related, self.owner_key or related.get_key_name()

    def has_parent_key(self) -> bool:
        return bool(self.child.get_raw(self.morph_type)) and self.child.get_raw(self.morph_id) is not None

    def get_query(self) -> ModelQuery:
        if not self.has_parent_key():
            raise RelationFault(type(self.child).__name__, f"'{self.name}' has no type to resolve")
        related, key = self._target(self.child.get_raw(self.morph_type))
        query = related.query().where(related.qualify_column(key), self.child.get_raw(self.morph_id))
        return self._finish(query)

    def get(self) -> List["Model"]:
        model = self.first()
        return [model] if model is not None else []

    def eager_load(self, models: List["Model"], name: str) -> None:
        groups: Dict[str, List["Model"]] = {}
        for model in models:
            tag = model.get_raw(self.morph_type)
            if tag and model.get_raw(self.morph_id) is not None:
                groups.setdefault(tag, []).append(model)
            else:
                model.set_relation(name, None)

        for tag, owners in groups.items():
            related, key = self._target(tag)
            ids = _unique(m.get_raw(self.morph_id) for m in owners)
            results = self._finish(related.query().where_in(related.qualify_column(key), ids)).get()
            by_key = {_key(r.get_raw(key)): r for r in results}
            for model in owners:
                model.set_relation(name, by_key.get(_key(model.get_raw(self.morph_id))))

    def associate(self, model: "Model") -> "Model":
        self.child.force_fill({
            self.morph_type: model.get_morph_class(),
            self.morph_id: model.get_raw(self.owner_key or model.get_key_name()),
        })
        self.child.set_relation(self.name, model)
        return self.child

    def dissociate(self) -> "Model":
        self.child.force_fill({self.morph_type: None, self.morph_id: None})
        self.child.set_relation(self.name, None)
        return self.child


class MorphToMany(BelongsToMany):
    """
    Polymorphic many-to-many. ``inverse=True`` is the ``morphed_by_many``
    side, where the discriminator names the related model instead.
    """

    def __init__(
        self,
        parent: "Model",
        related: Type["Model"],
        name: str,
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
        inverse: bool = False,
    ):
        super().__init__(parent, related, table, foreign_pivot_key, related_pivot_key, parent_key, related_key)
        self.name = name
        self.morph_type = f"{name}_type"
        self.inverse = inverse
        self.morph_class = related.get_morph_class() if inverse else parent.get_morph_class()

    def _morph_pivot_values(self) -> Dict[str, Any]:
        return {self.morph_type: self.morph_class}
