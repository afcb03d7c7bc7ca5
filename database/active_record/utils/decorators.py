from recordmapper.database.Events import LIFECYCLE_EVENTS


def on(event_name: str, priority: int = 0):
    """Mark a RecordHooks method as an extra listener for ``event_name``."""
    if event_name not in LIFECYCLE_EVENTS:
        raise ValueError(f"Unknown lifecycle event '{event_name}'")

    def decorator(fn):
        fn.__event_name__ = event_name
        fn.__event_priority__ = priority
        return fn
    return decorator
