from typing import Any, Callable

LIFECYCLE_EVENTS = (
    "on_construct",
    "before_find",
    "after_find",
    "before_find_all",
    "after_find_all",
    "before_insert",
    "after_insert",
    "before_update",
    "after_update",
    "before_save",
    "after_save",
    "before_delete",
    "after_delete",
)


class RecordHooks:
    """
    The set of lifecycle extension points a record dispatches to.

    Override the methods you need. Methods decorated with ``@on(...)`` are
    registered as extra listeners when the hook-set is constructed, so a
    subclass overriding ``__init__`` must call ``super().__init__()``.

    Exceptions raised by a hook propagate to the caller; a raising
    ``before_*`` hook aborts the operation before any statement runs.
    """

    def __init__(self):
        self.__event_listeners__: dict[str, list[tuple[int, Callable]]] = {}
        for name in dir(type(self)):
            attr = getattr(type(self), name, None)
            event = getattr(attr, "__event_name__", None)
            if event:
                self.listen(event, getattr(self, name), getattr(attr, "__event_priority__", 0))

    def listen(self, event_name: str, callback: Callable, priority: int = 0):
        """
        Register an extra listener. Higher priority runs first; listeners run
        after the hook method of the same name.
        """
        if event_name not in LIFECYCLE_EVENTS:
            raise ValueError(f"Unknown lifecycle event '{event_name}'")
        registry = self.__dict__.setdefault("__event_listeners__", {})
        registered = registry.setdefault(event_name, [])
        if (priority, callback) not in registered:
            registered.append((priority, callback))
            registered.sort(key=lambda pair: pair[0], reverse=True)

    def listeners(self, event_name: str) -> list[Callable]:
        registry = self.__dict__.get("__event_listeners__", {})
        return [callback for _, callback in registry.get(event_name, [])]

    # ----------------------------------------------------------------------
    # Lifecycle Events
    # ----------------------------------------------------------------------

    def on_construct(self, record, config):
        """
        Called while the record is being built. ``config`` is mutable: set
        ``connection``, ``table`` or ``primary_key`` on it to override them.
        """
        pass

    def before_find(self, record):
        pass

    def after_find(self, record):
        pass

    def before_find_all(self, record):
        pass

    def after_find_all(self, records):
        """Receives the full result list once per find_all()."""
        pass

    def before_insert(self, record):
        pass

    def after_insert(self, record):
        pass

    def before_update(self, record):
        pass

    def after_update(self, record):
        pass

    def before_save(self, record):
        """Runs before both insert and update."""
        pass

    def after_save(self, record):
        pass

    def before_delete(self, record):
        pass

    def after_delete(self, record):
        pass


class Events:
    """Dispatch half of the lifecycle, mixed into ActiveRecord."""

    hooks: RecordHooks

    def on(self, event_name: str, callback: Callable, priority: int = 0):
        """
        Register a listener on this record's hook-set. Records produced by
        find_all() and relation loading share the hook-set, so they see it too.
        """
        self.hooks.listen(event_name, callback, priority)
        return self

    def fire_event(self, event_name: str, *payload: Any):
        method = getattr(self.hooks, event_name, None)
        if callable(method):
            method(*payload)
        for callback in self.hooks.listeners(event_name):
            callback(*payload)
