import os
import sqlite3
import time
from typing import Any, Sequence

from recordmapper.core_services.Database import Database, ExecuteResult, unpack_statement
from recordmapper.database.Statement import Statement


def dict_factory(cursor, row):
    """Convert row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


class Sqlite3Database(Database):
    """
    sqlite3 adapter. One connection is opened lazily and kept, so an
    in-memory database lives as long as the adapter does.
    """
    connection = None
    connection_string: str = ""
    placeholder = "?"
    quote_char = '"'
    results: list[dict[str, Any]] = []

    def __init__(self, connection_string: str | None = None, **connect_kwargs):
        super().__init__()
        self.connection_string = (
            connection_string
            or self.connection_string
            or os.getenv("SQLITE_DATABASE", ":memory:")
        )
        self.connect_kwargs = connect_kwargs
        self.connection = None

    def connect(self):
        if self.connection is None:
            self.connection = sqlite3.connect(self.connection_string, **self.connect_kwargs)
            self.connection.row_factory = dict_factory
        return self.connection.cursor()

    def execute(self, sql: str | Statement, params: Sequence[Any] = ()) -> ExecuteResult:
        sql, params = unpack_statement(sql, params)
        start_time = time.perf_counter()
        cursor = self.connect()
        try:
            cursor.execute(sql, params)
            self.connection.commit()
            result = ExecuteResult(cursor.rowcount, cursor.lastrowid)
        except sqlite3.Error as e:
            self.connection.rollback()
            self.logger.error(f"{type(e).__name__}: {e}")
            raise
        finally:
            cursor.close()
        self._log_query(sql, params, (time.perf_counter() - start_time) * 1000)
        return result

    def query(self, sql: str | Statement, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        sql, params = unpack_statement(sql, params)
        start_time = time.perf_counter()
        cursor = self.connect()
        try:
            cursor.execute(sql, params)
            self.results = cursor.fetchall()
        except sqlite3.Error as e:
            self.logger.error(f"{type(e).__name__}: {e}")
            raise
        finally:
            cursor.close()
        self._log_query(sql, params, (time.perf_counter() - start_time) * 1000)
        return self.results

    def executescript(self, script: str):
        """Run a multi-statement script, e.g. schema setup."""
        cursor = self.connect()
        try:
            cursor.executescript(script)
            self.connection.commit()
        finally:
            cursor.close()
