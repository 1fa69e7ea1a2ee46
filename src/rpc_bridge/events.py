"""
Handle based listener registry.

Listeners are removed through the handle returned on subscription, never by
comparing callables, so the same function may be registered under several
events (or twice under one event) and each binding can be dropped on its own.
"""
import itertools
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

Listener = Callable[..., Any]


@dataclass(frozen=True)
class ListenerHandle:
    event: Hashable
    key: int


class EventRegistry:
    """Maps an event name (any hashable, including request ids) to its listeners."""

    def __init__(self, name: str | None = None):
        self.name = name or f"events-{id(self)}"
        self._listeners: dict[Hashable, dict[int, tuple[Listener, bool]]] = {}
        self._keys = itertools.count()
        self.logger = logger.bind(registry=self.name)

    def subscribe(self, event: Hashable, listener: Listener, once: bool = False) -> ListenerHandle:
        if not callable(listener):
            raise TypeError(f"Listener for event {event!r} must be callable, got {type(listener).__name__}")
        handle = ListenerHandle(event=event, key=next(self._keys))
        # dicts keep insertion order, so listeners fire in subscription order
        self._listeners.setdefault(event, {})[handle.key] = (listener, once)
        return handle

    def unsubscribe(self, handle: ListenerHandle) -> bool:
        """Removes one binding. Returns False if it was already gone."""
        bucket = self._listeners.get(handle.event)
        if not bucket or handle.key not in bucket:
            return False
        del bucket[handle.key]
        if not bucket:
            del self._listeners[handle.event]
        return True

    def emit(self, event: Hashable, *args: Any) -> bool:
        """
        Calls every listener of `event` with `args`. Listener exceptions propagate.
        Returns True if at least one listener was called.
        """
        bucket = self._listeners.get(event)
        if not bucket:
            return False
        # Snapshot: listeners may subscribe or unsubscribe while we iterate.
        for key, (listener, once) in list(bucket.items()):
            if once:
                self.unsubscribe(ListenerHandle(event=event, key=key))
            listener(*args)
        return True

    def remove_all(self, event: Hashable) -> int:
        """Drops every listener of a single event. Returns how many were removed."""
        removed = len(self._listeners.pop(event, {}))
        if removed:
            self.logger.debug("Removed listeners.", listener_event=event, count=removed)
        return removed

    def clear(self) -> None:
        self._listeners.clear()

    def listener_count(self, event: Hashable) -> int:
        return len(self._listeners.get(event, {}))

    def event_names(self) -> list[Hashable]:
        return list(self._listeners)
