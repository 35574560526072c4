"""
Tessera Model Metaclass — Meta parsing and declared-member collection.

Collects the closed sets of relations, accessors, mutators and local
scopes a model declares with the decorators below, inheriting whatever
the parent models declared. Classes are NOT registered anywhere here;
that is ``ModelRegistry.register()``'s job.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Dict, FrozenSet, Tuple

from .options import Options

__all__ = ["ModelMeta", "relation", "accessor", "mutator", "scope"]


# ── Declaration decorators ───────────────────────────────────────────


def relation(fn: Callable) -> Callable:
    """
    Declare a relationship method.

    Usage:
        @relation
        def comments(self):
            return self.has_many(Comment)

    ``post.comments()`` returns the relation (a query you can chain);
    ``post["comments"]`` resolves and memoises its results.
    """

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        rel = fn(self, *args, **kwargs)
        if getattr(rel, "relation_name", None) is None:
            rel.relation_name = fn.__name__
        return rel

    wrapper._tessera_relation = True
    return wrapper


def accessor(key: str) -> Callable[[Callable], Callable]:
    """
    Declare a read transform for ``key``; receives the cast value.

    Usage:
        @accessor("title")
        def get_title(self, value):
            return value.title() if value else value
    """

    def decorator(fn: Callable) -> Callable:
        fn._tessera_accessor = key
        return fn

    return decorator


def mutator(key: str) -> Callable[[Callable], Callable]:
    """
    Declare a write transform for ``key``; its return value is stored.

    Usage:
        @mutator("email")
        def set_email(self, value):
            return value.strip().lower()
    """

    def decorator(fn: Callable) -> Callable:
        fn._tessera_mutator = key
        return fn

    return decorator


def scope(fn: Callable) -> Callable:
    """
    Declare a local query scope, applied with ``query.scope(name, *args)``.

    Usage:
        @scope
        def published(query):
            return query.where("published", True)
    """
    fn = fn.__func__ if isinstance(fn, staticmethod) else fn
    wrapped = staticmethod(fn)
    fn._tessera_scope = fn.__name__
    return wrapped


class ModelMeta(type):
    """
    Metaclass for Tessera models.

    Handles:
    - Meta class parsing → Options (inherited from the parent model)
    - ``table = "..."`` shorthand
    - Relation / accessor / mutator / scope collection
    """

    def __new__(
        mcs,
        name: str,
        bases: Tuple[type, ...],
        namespace: Dict[str, Any],
        **kwargs,
    ) -> "ModelMeta":
        # Don't process the base Model class itself
        parents = [b for b in bases if isinstance(b, ModelMeta)]
        if not parents:
            return super().__new__(mcs, name, bases, namespace)

        meta_class = namespace.pop("Meta", None)
        table_attr = namespace.pop("table", None) or namespace.pop("table_name", None)

        relation_names: set = set()
        accessors: Dict[str, str] = {}
        mutators: Dict[str, str] = {}
        scopes: Dict[str, str] = {}

        # Inherit declarations from parents
        for parent in parents:
            relation_names.update(getattr(parent, "_relation_names", ()))
            accessors.update(getattr(parent, "_accessors", {}))
            mutators.update(getattr(parent, "_mutators", {}))
            scopes.update(getattr(parent, "_scopes", {}))

        for attr, value in namespace.items():
            target = value.__func__ if isinstance(value, staticmethod) else value
            if getattr(target, "_tessera_relation", False):
                relation_names.add(attr)
            key = getattr(target, "_tessera_accessor", None)
            if key is not None:
                accessors[key] = attr
            key = getattr(target, "_tessera_mutator", None)
            if key is not None:
                mutators[key] = attr
            if getattr(target, "_tessera_scope", None) is not None:
                scopes[attr] = attr

        parent_opts = next(
            (getattr(p, "_meta", None) for p in parents if getattr(p, "_meta", None) is not None),
            None,
        )
        opts = Options(name, meta_class, table_attr, parent=parent_opts)

        cls = super().__new__(mcs, name, bases, namespace)

        cls._meta = opts
        cls._relation_names: FrozenSet[str] = frozenset(relation_names)
        cls._accessors = accessors
        cls._mutators = mutators
        cls._scopes = scopes
        cls._registry = None
        return cls
