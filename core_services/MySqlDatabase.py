import os
import time
from typing import Any, Sequence

import mysql.connector

from recordmapper.core_services.Database import Database, ExecuteResult, unpack_statement
from recordmapper.database.Statement import Statement


class MySqlDatabase(Database):
    connection = None
    connection_dict: dict = {}
    placeholder = "%s"
    quote_char = "`"
    results: list[dict[str, Any]] = []

    def __init__(self, **connection_dict):
        super().__init__()
        settings = {
            "host": os.getenv("MYSQL_HOST", "localhost"),
            "port": int(os.getenv("MYSQL_PORT", "3306")),
            "user": os.getenv("MYSQL_USER", "root"),
            "password": os.getenv("MYSQL_PASSWORD", ""),
            "database": os.getenv("MYSQL_DATABASE", ""),
        }
        settings.update(self.connection_dict)
        settings.update(connection_dict)
        self.connection_dict = settings
        self.connection = None

    def connect(self):
        if self.connection is None:
            self.connection = mysql.connector.connect(**self.connection_dict)
        return self.connection.cursor(dictionary=True)

    def execute(self, sql: str | Statement, params: Sequence[Any] = ()) -> ExecuteResult:
        sql, params = unpack_statement(sql, params)
        start_time = time.perf_counter()
        cursor = self.connect()
        try:
            cursor.execute(sql, params)
            self.connection.commit()
        except mysql.connector.Error as e:
            self.connection.rollback()
            self.logger.error(f"{type(e).__name__}: {e}")
            raise
        finally:
            self._log_query(sql, params, (time.perf_counter() - start_time) * 1000)
        result = ExecuteResult(cursor.rowcount, cursor.lastrowid)
        cursor.close()
        return result

    def query(self, sql: str | Statement, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        sql, params = unpack_statement(sql, params)
        start_time = time.perf_counter()
        cursor = self.connect()
        try:
            cursor.execute(sql, params)
            self.results = [dict(row) for row in cursor.fetchall()]
        except mysql.connector.errors.ProgrammingError as e:
            self.logger.error(f"ProgrammingError: {e}")
            raise
        finally:
            self._log_query(sql, params, (time.perf_counter() - start_time) * 1000)
            cursor.close()
        return self.results
