"""
Tessera Models — Active Record models, relations and the model registry.

Usage:
    from tessera.models import Model, ModelRegistry, relation

    class User(Model):
        class Meta:
            fillable = ["name", "email"]

        @relation
        def posts(self):
            return self.has_many("Post")

    registry = ModelRegistry(db)
    registry.register(User, Post)
"""

from .base import Model
from .casts import cast_value, to_storage
from .events import HALTING_EVENTS, MODEL_EVENTS, ModelEvents
from .metaclass import ModelMeta, accessor, mutator, relation, scope
from .options import Options
from .query import ModelQuery
from .registry import SOFT_DELETES_SCOPE, ModelRegistry
from .relations import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    HasOneOrMany,
    MorphMany,
    MorphOne,
    MorphOneOrMany,
    MorphTo,
    MorphToMany,
    Relation,
)

__all__ = [
    "Model",
    "ModelMeta",
    "ModelQuery",
    "ModelRegistry",
    "ModelEvents",
    "MODEL_EVENTS",
    "HALTING_EVENTS",
    "SOFT_DELETES_SCOPE",
    "Options",
    "relation",
    "accessor",
    "mutator",
    "scope",
    "cast_value",
    "to_storage",
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
