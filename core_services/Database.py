import logging
import os
import pprint
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from dotenv import load_dotenv

from recordmapper.database.Statement import Statement

load_dotenv()


class NoResultsFound(Exception):
    # Custom exception for no results found returns text "Query returned no results"
    def __init__(self, message="Query returned no results"):
        super().__init__(message)


@dataclass(frozen=True)
class ExecuteResult:
    rowcount: int
    lastrowid: Any = None


def unpack_statement(sql: str | Statement, params: Sequence[Any] = ()) -> tuple[str, tuple]:
    if isinstance(sql, Statement):
        return sql.sql, tuple(sql.params)
    return sql, tuple(params or ())


class Database(Protocol):
    """
    The storage capability a record is bound to.

    ``execute`` runs a parameterized write and reports the affected row count
    and the last generated id. ``query`` runs a parameterized read and returns
    rows as field/value mappings. ``placeholder`` is the bound-parameter mark
    the driver expects; ``quote_char`` quotes column identifiers.
    """
    connection = None
    placeholder: str = "%s"
    quote_char: str = ""
    results = None

    def __init__(self, *args, **kwargs):
        super().__init__()
        self.logging_enabled = os.getenv("ORM_DEBUG", 'false').lower() == "true"
        self.logger = logging.getLogger("orm.sql")
        if not self.logger.handlers:  # prevent duplicate handlers
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(message)s"
            ))
            self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)

    def _log_query(self, sql: str, params: tuple, elapsed_ms: float):
        if self.logging_enabled:
            log_entry = {
                "event": "sql_query",
                "sql": sql,
                "params": params,
                "elapsed_ms": round(elapsed_ms, 2),
                "database": self.__class__.__name__,
            }
            # pretty print dict instead of raw string
            self.logger.debug("\n" + pprint.pformat(log_entry, indent=2, width=80, compact=False) + "\n")

    class DotDict(dict):
        def __getattr__(self, key):
            return self.get(key)

        def __setattr__(self, key, value):
            self[key] = value

        def __delattr__(self, key):
            del self[key]

    def connect(self):
        pass

    def execute(self, sql: str | Statement, params: Sequence[Any] = ()) -> ExecuteResult:
        ...

    def query(self, sql: str | Statement, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        ...

    def close(self):
        if self.connection is not None:
            self.connection.close()
            self.connection = None

    def results_or_fail(self, sql: str | Statement, params: Sequence[Any] = (), fallback=None):
        self.results = self.query(sql, params)
        if not self.results:
            if fallback:
                return fallback()
            raise NoResultsFound()
        self.results = [self.DotDict(result) for result in self.results]
        return self.results
