"""
Tessera Models — ModelQuery.

A model-aware wrapper over ``QueryBuilder``. Chain methods are forwarded
to the wrapped builder (and return a new ``ModelQuery``); terminal reads
hydrate model instances, apply the registry's global scopes and run
batched eager loading.

Usage:
    posts = (
        Post.query()
        .where("published", True)
        .with_related("author", {"comments": lambda q: q.where("approved", True)})
        .latest()
        .get()
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Type, Union

from ..db.query import QueryBuilder, _page_payload
from ..faults import ModelNotFoundFault, QueryFault
from .registry import SOFT_DELETES_SCOPE

if TYPE_CHECKING:
    from .base import Model

logger = logging.getLogger("tessera.models")

__all__ = ["ModelQuery", "EagerSpec", "parse_eager"]

# (dotted relation path, optional constraint)
EagerSpec = Tuple[str, Optional[Callable[["ModelQuery"], Any]]]

# Builder methods a ModelQuery forwards; each returns a new ModelQuery.
_CHAIN_METHODS = (
    "select",
    "add_select",
    "select_raw",
    "distinct",
    "join",
    "left_join",
    "right_join",
    "where",
    "or_where",
    "where_column",
    "where_in",
    "or_where_in",
    "where_not_in",
    "or_where_not_in",
    "where_null",
    "or_where_null",
    "where_not_null",
    "or_where_not_null",
    "where_between",
    "or_where_between",
    "where_not_between",
    "where_like",
    "or_where_like",
    "where_raw",
    "or_where_raw",
    "group_by",
    "having",
    "or_having",
    "having_raw",
    "order_by",
    "order_by_desc",
    "order_by_raw",
    "reorder",
    "limit",
    "take",
    "offset",
    "skip",
    "for_page",
)


def parse_eager(relations: Iterable[Any]) -> List[EagerSpec]:
    """
    Normalise ``with_related`` arguments.

    Accepts relation names (``"author"``, ``"comments.author"``), lists of
    names and ``{name: constraint}`` dicts.
    """
    specs: List[EagerSpec] = []
    for item in relations:
        if isinstance(item, str):
            specs.append((item, None))
        elif isinstance(item, dict):
            for name, constraint in item.items():
                specs.append((name, constraint))
        elif isinstance(item, (list, tuple)):
            specs.extend(parse_eager(item))
        else:
            raise QueryFault(f"Cannot eager load {item!r}; expected a relation name or dict", operation="with_related")
    return specs


def _group_eager(specs: List[EagerSpec]) -> Dict[str, Tuple[Optional[Callable], List[EagerSpec]]]:
    """Split dotted paths into top-level relation -> (constraint, nested specs)."""
    tree: Dict[str, list] = {}
    for path, constraint in specs:
        top, _, rest = path.partition(".")
        entry = tree.setdefault(top, [None, []])
        if rest:
            entry[1].append((rest, constraint))
        elif constraint is not None:
            entry[0] = constraint
    return {name: (entry[0], entry[1]) for name, entry in tree.items()}


def apply_constraint(query: "ModelQuery", constraint: Callable[["ModelQuery"], Any]) -> "ModelQuery":
    result = constraint(query)
    return query if result is None else result


class ModelQuery:
    """
    Query for one model class.

    Immutable like the builder it wraps: every chain call returns a new
    ``ModelQuery``.
    """

    __slots__ = ("model", "_query", "_eager", "_removed_scopes")

    def __init__(
        self,
        model: Type["Model"],
        query: QueryBuilder,
        eager: Optional[List[EagerSpec]] = None,
        removed_scopes: Optional[Set[str]] = None,
    ):
        self.model = model
        self._query = query
        self._eager: List[EagerSpec] = list(eager or [])
        self._removed_scopes: Set[str] = set(removed_scopes or ())

    def _wrap(self, query: QueryBuilder) -> "ModelQuery":
        return ModelQuery(self.model, query, self._eager, self._removed_scopes)

    @property
    def query(self) -> QueryBuilder:
        """The wrapped builder, without global scopes applied."""
        return self._query

    # ── Global scopes ────────────────────────────────────────────────

    def without_global_scope(self, *names: str) -> "ModelQuery":
        new = self._wrap(self._query)
        new._removed_scopes.update(names)
        return new

    def without_global_scopes(self) -> "ModelQuery":
        names = self.model._get_registry().global_scopes(self.model).keys()
        return self.without_global_scope(*names)

    def to_base(self) -> QueryBuilder:
        """The wrapped builder with every active global scope applied."""
        scopes = {
            name: fn
            for name, fn in self.model._get_registry().global_scopes(self.model).items()
            if name not in self._removed_scopes
        }
        if not scopes:
            return self._query
        builder = _group_or_wheres(self._query)
        for fn in scopes.values():
            scoped = fn(ModelQuery(self.model, builder, removed_scopes=set(scopes)))
            builder = scoped._query if isinstance(scoped, ModelQuery) else scoped
        return builder

    def scope(self, name: str, *args: Any, **kwargs: Any) -> "ModelQuery":
        """Apply a local ``@scope`` declared on the model."""
        if name not in self.model._scopes:
            raise QueryFault(f"{self.model.__name__} has no scope '{name}'", operation="scope")
        result = getattr(self.model, self.model._scopes[name])(self, *args, **kwargs)
        return self if result is None else result

    # ── Soft deletes ─────────────────────────────────────────────────

    def with_trashed(self) -> "ModelQuery":
        return self.without_global_scope(SOFT_DELETES_SCOPE)

    def only_trashed(self) -> "ModelQuery":
        column = self.model.qualify_column(self.model._meta.deleted_at_column)
        return self.with_trashed().where_not_null(column)

    def without_trashed(self) -> "ModelQuery":
        column = self.model.qualify_column(self.model._meta.deleted_at_column)
        return self.with_trashed().where_null(column)

    # ── Ordering shortcuts (model-aware defaults) ────────────────────

    def latest(self, column: Optional[str] = None) -> "ModelQuery":
        return self.order_by(column or self.model._meta.created_at_column, "desc")

    def oldest(self, column: Optional[str] = None) -> "ModelQuery":
        return self.order_by(column or self.model._meta.created_at_column, "asc")

    # ── Eager loading ────────────────────────────────────────────────

    def with_related(self, *relations: Any) -> "ModelQuery":
        """
        Eager load relations on the results, one query per relation.

        Usage:
            .with_related("author", "comments.author")
            .with_related({"comments": lambda q: q.where("approved", True)})
        """
        new = self._wrap(self._query)
        new._eager.extend(parse_eager(relations))
        return new

    def without_related(self, *names: str) -> "ModelQuery":
        new = self._wrap(self._query)
        new._eager = [spec for spec in new._eager if spec[0].partition(".")[0] not in names]
        return new

    def eager_load_relations(self, models: List["Model"]) -> List["Model"]:
        if not models:
            return models
        for name, (constraint, nested) in _group_eager(self._eager).items():
            self._eager_load_relation(models, name, constraint, nested)
        return models

    def _eager_load_relation(
        self,
        models: List["Model"],
        name: str,
        constraint: Optional[Callable],
        nested: List[EagerSpec],
    ) -> None:
        relation = models[0].get_relation_instance(name)
        if constraint is not None:
            relation = relation.constrain(constraint)
        if nested:
            relation = relation.with_related(*[{path: fn} if fn else path for path, fn in nested])
        logger.debug(f"Eager loading {self.model.__name__}.{name} for {len(models)} model(s)")
        relation.eager_load(models, name)

    # ── Terminal: reads ──────────────────────────────────────────────

    def _select_query(self, columns: Tuple[Any, ...]) -> QueryBuilder:
        builder = self.to_base()
        if columns:
            return builder.select(*columns)
        if not builder._columns:
            return builder.select(self.model.qualify_column("*"))
        return builder

    def get(self, *columns: Any) -> List["Model"]:
        """Execute and return hydrated models with eager relations loaded."""
        rows = self._select_query(columns).get()
        models = self.model.hydrate(rows)
        return self.eager_load_relations(models)

    def all(self) -> List["Model"]:
        return self.get()

    def first(self, *columns: Any) -> Optional["Model"]:
        models = self.limit(1).get(*columns)
        return models[0] if models else None

    def first_or_fail(self, *columns: Any) -> "Model":
        model = self.first(*columns)
        if model is None:
            raise ModelNotFoundFault(self.model.__name__)
        return model

    def find(self, id: Any, *columns: Any) -> Union["Model", List["Model"], None]:
        """Find by primary key; a list of ids returns a list."""
        if isinstance(id, (list, tuple, set)):
            return self.find_many(id, *columns)
        return self.where(self.model.qualify_column(self.model.get_key_name()), id).first(*columns)

    def find_many(self, ids: Iterable[Any], *columns: Any) -> List["Model"]:
        ids = list(ids)
        if not ids:
            return []
        return self.where_in(self.model.qualify_column(self.model.get_key_name()), ids).get(*columns)

    def find_or_fail(self, id: Any, *columns: Any) -> Union["Model", List["Model"]]:
        """Like ``find`` but raises ``ModelNotFoundFault`` for missing ids."""
        if isinstance(id, (list, tuple, set)):
            ids = list(dict.fromkeys(id))
            models = self.find_many(ids, *columns)
            if len(models) != len(ids):
                found = {str(m.get_key()) for m in models}
                missing = [i for i in ids if str(i) not in found]
                raise ModelNotFoundFault(self.model.__name__, missing)
            return models
        model = self.find(id, *columns)
        if model is None:
            raise ModelNotFoundFault(self.model.__name__, id)
        return model

    def find_or_new(self, id: Any) -> "Model":
        model = self.find(id)
        return model if model is not None else self.model()

    def first_or_new(self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        model = self.where(attributes).first()
        if model is None:
            model = self.model({**attributes, **(values or {})})
        return model

    def first_or_create(self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        model = self.where(attributes).first()
        if model is None:
            model = self.model.create({**attributes, **(values or {})})
        return model

    def update_or_create(self, attributes: Dict[str, Any], values: Optional[Dict[str, Any]] = None) -> "Model":
        model = self.first_or_new(attributes)
        model.fill(values or {})
        model.save()
        return model

    def value(self, column: Any) -> Any:
        return self.to_base().value(column)

    def pluck(self, column: Any, key: Any = None) -> Union[List[Any], Dict[Any, Any]]:
        return self.to_base().pluck(column, key)

    def exists(self) -> bool:
        return self.to_base().exists()

    def doesnt_exist(self) -> bool:
        return not self.exists()

    def count(self, column: str = "*") -> int:
        return self.to_base().count(column)

    def sum(self, column: str) -> Any:
        return self.to_base().sum(column)

    def avg(self, column: str) -> Any:
        return self.to_base().avg(column)

    average = avg

    def min(self, column: str) -> Any:
        return self.to_base().min(column)

    def max(self, column: str) -> Any:
        return self.to_base().max(column)

    def paginate(self, page: int = 1, per_page: Optional[int] = None) -> Dict[str, Any]:
        """
        Page of hydrated models plus paging metadata.

        Returns the same dict shape as ``QueryBuilder.paginate``.
        """
        page = max(1, int(page))
        per_page = max(1, int(per_page or self.model._meta.per_page))
        total = self.count()
        data = self.for_page(page, per_page).get() if total else []
        return _page_payload(data, total, page, per_page)

    def chunk(self, count: int, callback: Callable[[List["Model"]], Any]) -> bool:
        """
        Feed models to ``callback`` in windows of ``count``.

        Unordered queries are ordered by the primary key. Offsets shift if
        rows are inserted or deleted mid-scan.
        """
        if count <= 0:
            raise QueryFault("Chunk size must be positive", operation="chunk")
        query = self
        if not self._query._orders:
            query = self.order_by(self.model.qualify_column(self.model.get_key_name()))
        page = 1
        while True:
            models = query.for_page(page, count).get()
            if not models:
                break
            if callback(models) is False:
                return False
            if len(models) < count:
                break
            page += 1
        return True

    # ── Terminal: writes ─────────────────────────────────────────────

    def create(self, attributes: Optional[Dict[str, Any]] = None, **kwargs: Any) -> "Model":
        return self.model.create(attributes, **kwargs)

    def update(self, values: Dict[str, Any]) -> int:
        """Mass UPDATE of matching rows; no model events fire."""
        return self.to_base().update(self._stamp_update(self.model.prepare_for_storage(values)))

    def increment(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        return self.to_base().increment(column, amount, self._stamp_update(extra or {}))

    def decrement(self, column: str, amount: Any = 1, extra: Optional[Dict[str, Any]] = None) -> int:
        return self.to_base().decrement(column, amount, self._stamp_update(extra or {}))

    def _stamp_update(self, values: Dict[str, Any]) -> Dict[str, Any]:
        opts = self.model._meta
        if opts.timestamps and opts.updated_at_column not in values:
            values = {**values, opts.updated_at_column: self.model.fresh_timestamp_string()}
        return values

    def delete(self) -> int:
        """Delete matching rows; soft-deleting models get ``deleted_at`` stamped."""
        opts = self.model._meta
        if opts.soft_deletes:
            return self.update({opts.deleted_at_column: self.model.fresh_timestamp_string()})
        return self.to_base().delete()

    def force_delete(self) -> int:
        return self.to_base().delete()

    def restore(self) -> int:
        opts = self.model._meta
        if not opts.soft_deletes:
            raise QueryFault(f"{self.model.__name__} does not use soft deletes", operation="restore")
        return self.with_trashed().update({opts.deleted_at_column: None})

    # ── Compilation ──────────────────────────────────────────────────

    def to_sql(self) -> str:
        return self._select_query(()).to_sql()

    def get_bindings(self) -> List[Any]:
        return self._select_query(()).get_bindings()

    def __repr__(self) -> str:
        return f"<ModelQuery {self.model.__name__}: {self.to_sql()}>"


def _forward(name: str) -> Callable:
    def method(self: ModelQuery, *args: Any, **kwargs: Any) -> ModelQuery:
        return self._wrap(getattr(self._query, name)(*args, **kwargs))

    method.__name__ = name
    method.__qualname__ = f"ModelQuery.{name}"
    method.__doc__ = f"Forwarded to ``QueryBuilder.{name}``; returns a new ModelQuery."
    return method


for _name in _CHAIN_METHODS:
    setattr(ModelQuery, _name, _forward(_name))
del _name


def _group_or_wheres(builder: QueryBuilder) -> QueryBuilder:
    """Wrap existing wheres in parentheses when they contain an OR."""
    if not any(w.get("boolean") == "or" for w in builder._wheres):
        return builder
    nested = builder.new_query()
    nested._wheres = builder._wheres.copy()
    nested._bindings["where"] = builder._bindings["where"].copy()
    grouped = builder.clone()
    grouped._wheres = [{"type": "nested", "query": nested, "boolean": "and"}]
    return grouped
