"""
Tessera Model Registry — explicit context object for models.

A ``ModelRegistry`` binds model classes to a ``DatabaseManager`` and owns
everything that would otherwise be process-global state: global query
scopes, lifecycle observers and the polymorphic type map.

Usage:
    db = DatabaseManager(config)
    registry = ModelRegistry(db)
    registry.register(User, Post, Comment)
    registry.morph_map({"post": Post})
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Type

from ..faults import ModelNotRegisteredFault, RelationFault
from .events import ModelEvents

if TYPE_CHECKING:
    from ..db.connection import Connection
    from ..db.manager import DatabaseManager
    from .base import Model
    from .query import ModelQuery

logger = logging.getLogger("tessera.models")

__all__ = ["ModelRegistry", "SOFT_DELETES_SCOPE"]

SOFT_DELETES_SCOPE = "soft_deletes"

GlobalScope = Callable[["ModelQuery"], "ModelQuery"]


def _exclude_trashed(query: "ModelQuery") -> "ModelQuery":
    model = query.model
    return query.where_null(model.qualify_column(model._meta.deleted_at_column))


class ModelRegistry:
    """
    Registry of model classes bound to one ``DatabaseManager``.

    A model class belongs to the registry that registered it last.
    Scopes and observers are append-only per model type.
    """

    def __init__(self, db: "DatabaseManager"):
        self._db = db
        self._models: Dict[str, Type["Model"]] = {}
        self._global_scopes: Dict[type, Dict[str, GlobalScope]] = {}
        self._morph_map: Dict[str, Type["Model"]] = {}
        self._events = ModelEvents()

    @property
    def db(self) -> "DatabaseManager":
        return self._db

    @property
    def events(self) -> ModelEvents:
        return self._events

    # ── Registration ─────────────────────────────────────────────────

    def register(self, *model_classes: Type["Model"]) -> Type["Model"]:
        """
        Register one or more model classes and run their boot steps.

        Returns the last class so it also works as a class decorator.
        """
        for model_cls in model_classes:
            name = model_cls.__name__
            if name in self._models and self._models[name] is not model_cls:
                logger.warning(f"Model name '{name}' re-registered; replacing {self._models[name]!r}")
            self._models[name] = model_cls
            model_cls._registry = self

            if model_cls._meta.soft_deletes:
                self.add_global_scope(model_cls, SOFT_DELETES_SCOPE, _exclude_trashed)

            boot = getattr(model_cls, "boot", None)
            if callable(boot):
                boot(self)
            logger.debug(f"Registered model {name} -> table '{model_cls._meta.table_name}'")
        return model_classes[-1] if model_classes else None

    def get(self, name: str) -> Optional[Type["Model"]]:
        """Get model class by name."""
        return self._models.get(name)

    def resolve(self, name: str) -> Type["Model"]:
        """Get model class by name or raise ``ModelNotRegisteredFault``."""
        model_cls = self._models.get(name)
        if model_cls is None:
            raise ModelNotRegisteredFault(name)
        return model_cls

    def all_models(self) -> Dict[str, Type["Model"]]:
        """Get all registered models."""
        return dict(self._models)

    def is_registered(self, model_cls: Type["Model"]) -> bool:
        return self._models.get(model_cls.__name__) is model_cls

    def connection_for(self, model_cls: Type["Model"]) -> "Connection":
        """The connection ``model_cls`` reads and writes through."""
        return self._db.connection(model_cls._meta.connection)

    # ── Global scopes ────────────────────────────────────────────────

    def add_global_scope(self, model_cls: Type["Model"], name: str, scope: GlobalScope) -> None:
        """
        Apply ``scope`` to every query for ``model_cls``.

        A scope receives a ``ModelQuery`` and returns the constrained query;
        ``query.without_global_scope(name)`` opts out per query.
        """
        self._global_scopes.setdefault(model_cls, {})[name] = scope

    def global_scopes(self, model_cls: Type["Model"]) -> Dict[str, GlobalScope]:
        return dict(self._global_scopes.get(model_cls, {}))

    def has_global_scope(self, model_cls: Type["Model"], name: str) -> bool:
        return name in self._global_scopes.get(model_cls, {})

    # ── Observers ────────────────────────────────────────────────────

    def listen(self, model_cls: Type["Model"], event: str, handler: Optional[Callable] = None, **kwargs):
        return self._events.listen(model_cls, event, handler, **kwargs)

    def observe(self, model_cls: Type["Model"], observer: Any, **kwargs) -> None:
        self._events.observe(model_cls, observer, **kwargs)

    # ── Polymorphic types ────────────────────────────────────────────

    def morph_map(self, mapping: Optional[Dict[str, Type["Model"]]] = None) -> Dict[str, Type["Model"]]:
        """
        Register aliases stored in ``*_type`` columns; returns the full map.

        Usage:
            registry.morph_map({"post": Post, "video": Video})
        """
        if mapping:
            self._morph_map.update(mapping)
        return dict(self._morph_map)

    def morph_class_for(self, model_cls: Type["Model"]) -> str:
        """The tag written to ``*_type`` columns for ``model_cls``."""
        for alias, mapped in self._morph_map.items():
            if mapped is model_cls:
                return alias
        return model_cls._meta.morph_name or model_cls.__name__

    def resolve_morph_class(self, tag: str) -> Type["Model"]:
        """Turn a stored ``*_type`` tag back into a model class."""
        model_cls = self._morph_map.get(tag)
        if model_cls is not None:
            return model_cls
        model_cls = self._models.get(tag)
        if model_cls is not None:
            return model_cls
        for candidate in self._models.values():
            if candidate._meta.morph_name == tag:
                return candidate
        raise RelationFault(tag, f"Cannot resolve morph type '{tag}' to a registered model")

    def __repr__(self) -> str:
        return f"<ModelRegistry models={sorted(self._models)}>"
