from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Clause:
    """
    One pending predicate.

    ``operator`` is the SQL comparison ("=", "IN", "BETWEEN", ...), or one of
    the two structural markers:
        RAW   -> ``field`` holds literal SQL, ``value`` its bound parameters.
        GROUP -> ``value`` holds a tuple of nested clauses.
    ``boolean`` is the conjunction that attaches the clause to the previous one.
    """
    field: str
    operator: str
    value: Any = None
    boolean: str = "AND"


@dataclass(frozen=True)
class Statement:
    """
    Backend-agnostic description of one compiled query.

    Holds both the structured parts the builder accumulated and the
    parameterized SQL a connection executes.
    """
    kind: str
    table: str
    sql: str
    params: Tuple[Any, ...] = ()
    columns: Tuple[str, ...] = ()
    clauses: Tuple[Clause, ...] = ()
    joins: Tuple[str, ...] = ()
    group_by: Tuple[str, ...] = ()
    having: Tuple[Clause, ...] = ()
    order_by: Tuple[str, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None
    distinct: bool = False
    values: Tuple[Tuple[str, Any], ...] = field(default=())

    def modifiers(self) -> dict[str, Any]:
        """Only the modifiers that were actually set on the builder."""
        found = {}
        for name in ("joins", "group_by", "having", "order_by"):
            value = getattr(self, name)
            if value:
                found[name] = value
        if self.limit is not None:
            found["limit"] = self.limit
        if self.offset is not None:
            found["offset"] = self.offset
        if self.distinct:
            found["distinct"] = True
        return found

    def __iter__(self):
        # Allows ``sql, params = statement``.
        yield self.sql
        yield self.params
