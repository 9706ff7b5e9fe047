"""
DuckDB Dialect

Uses the native ``duckdb`` client; ``?`` placeholders become ``$1..$n``.
"""
from typing import Any, List, Tuple
import threading

import duckdb

from dapi.dialects.base import BaseDialect
from dapi.query.placeholders import NUMERIC


def database_from_url(url: str) -> str:
    """``duckdb:///path.db`` -> ``path.db``; bare paths pass through."""
    if url.startswith("duckdb://"):
        database = url[len("duckdb://"):]
        if database.startswith("/"):
            database = database[1:]
        return database or ":memory:"
    return url or ":memory:"


class DuckDBDialect(BaseDialect):
    """DuckDB driver with numeric placeholders."""

    name = "duckdb"
    paramstyle = NUMERIC
    quote_char = '"'

    def __init__(self, url: str, connection: "duckdb.DuckDBPyConnection" = None, **kwargs):
        super().__init__(url, **kwargs)
        self._connection = connection if connection is not None else duckdb.connect(database_from_url(url))
        self._lock = threading.Lock()

    @property
    def connection(self) -> "duckdb.DuckDBPyConnection":
        return self._connection

    def _run(self, sql: str, args: Tuple[Any, ...], write: bool) -> Tuple[List[str], List[Tuple], int]:
        # One cursor per statement; the parent connection is shared
        with self._lock:
            cursor = self._connection.cursor()
        try:
            cursor.execute(sql, list(args))
            if write:
                counted = cursor.fetchone()
                return [], [], int(counted[0]) if counted else 0
            columns = [d[0] for d in cursor.description] if cursor.description else []
            rows = [tuple(row) for row in cursor.fetchall()]
            return columns, rows, len(rows)
        finally:
            cursor.close()

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
