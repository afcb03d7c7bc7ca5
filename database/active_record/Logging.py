from contextlib import contextmanager


@contextmanager
def query_logging(model_or_db):
    """
    Log every statement executed inside the block, whatever ORM_DEBUG says.
    Accepts either an ActiveRecord (with .db) or a Database instance.
    """
    db = getattr(model_or_db, "db", model_or_db)
    previous = getattr(db, "logging_enabled", False)
    db.logging_enabled = True
    try:
        yield db
    finally:
        db.logging_enabled = previous
