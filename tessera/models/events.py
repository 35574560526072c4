"""
Tessera Model Events — per-type lifecycle observers.

Observers are stored per model class on a ``ModelEvents`` table owned by
the ``ModelRegistry``. Handlers receive the model instance. Returning
``False`` from a handler of an ``-ing`` event halts the operation.

Usage:
    events = registry.events

    @events.listen(Post, "saving")
    def require_title(post):
        return bool(post["title"])

    class PostObserver:
        def created(self, post):
            audit.append(("created", post.get_key()))

    events.observe(Post, PostObserver())
"""

from __future__ import annotations

import bisect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

logger = logging.getLogger("tessera.models")

__all__ = ["ModelEvents", "MODEL_EVENTS", "HALTING_EVENTS"]

MODEL_EVENTS: Tuple[str, ...] = (
    "creating",
    "created",
    "updating",
    "updated",
    "saving",
    "saved",
    "deleting",
    "deleted",
    "restoring",
    "restored",
)

HALTING_EVENTS = frozenset({"creating", "updating", "saving", "deleting", "restoring"})


class ModelEvents:
    """
    Observer table keyed by model class and event name.

    Handlers run in priority order (lower first, ties in registration
    order). Handlers registered on a parent model also fire for its
    subclasses. Exceptions raised by a handler propagate to the caller.
    """

    def __init__(self):
        # Each entry: (priority, sequence, handler)
        self._listeners: Dict[type, Dict[str, List[Tuple[int, int, Callable]]]] = {}
        self._sequence = 0

    def listen(
        self,
        model_cls: Type,
        event: str,
        handler: Optional[Callable] = None,
        *,
        priority: int = 100,
    ):
        """
        Register ``handler`` for ``event`` on ``model_cls``.

        Can be used as a decorator when ``handler`` is omitted.
        """
        if event not in MODEL_EVENTS:
            raise ValueError(f"Unknown model event '{event}'; expected one of {', '.join(MODEL_EVENTS)}")

        def _decorator(fn: Callable) -> Callable:
            self._add(model_cls, event, fn, priority)
            return fn

        if handler is not None:
            return _decorator(handler)
        return _decorator

    def _add(self, model_cls: Type, event: str, fn: Callable, priority: int) -> None:
        by_event = self._listeners.setdefault(model_cls, {})
        entries = by_event.setdefault(event, [])
        self._sequence += 1
        bisect.insort(entries, (priority, self._sequence, fn), key=lambda e: (e[0], e[1]))
        logger.debug(f"Listening for {model_cls.__name__}.{event} via {getattr(fn, '__qualname__', fn)!r}")

    def observe(self, model_cls: Type, observer: Any, *, priority: int = 100) -> None:
        """Register every method of ``observer`` named after an event."""
        found = False
        for event in MODEL_EVENTS:
            method = getattr(observer, event, None)
            if callable(method):
                self._add(model_cls, event, method, priority)
                found = True
        if not found:
            logger.warning(f"Observer {type(observer).__name__} defines no model event methods")

    def listeners(self, model_cls: Type, event: str) -> List[Callable]:
        """Handlers for ``event`` on ``model_cls`` and its model ancestors."""
        collected: List[Tuple[int, int, Callable]] = []
        for klass in model_cls.__mro__:
            by_event = self._listeners.get(klass)
            if by_event:
                collected.extend(by_event.get(event, ()))
        collected.sort(key=lambda e: (e[0], e[1]))
        return [fn for _, _, fn in collected]

    def has_listeners(self, model_cls: Type, event: str) -> bool:
        return bool(self.listeners(model_cls, event))

    def dispatch(self, event: str, instance: Any) -> bool:
        """
        Fire ``event`` for ``instance``.

        Returns False when a halting event was vetoed, True otherwise.
        """
        for handler in self.listeners(type(instance), event):
            result = handler(instance)
            if result is False and event in HALTING_EVENTS:
                logger.debug(f"{type(instance).__name__}.{event} halted by {getattr(handler, '__qualname__', handler)!r}")
                return False
        return True
