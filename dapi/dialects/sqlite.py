"""
SQLite Dialect
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from dapi.dialects.engine import SQLAlchemyDialect
from dapi.query.placeholders import QMARK


class SQLiteDialect(SQLAlchemyDialect):
    """SQLite driver; qmark placeholders pass through unchanged."""

    name = "sqlite"
    paramstyle = QMARK
    quote_char = '"'
    # SQLite only accepts OFFSET after a LIMIT
    unbounded_limit = "-1"

    def create_engine(self) -> Engine:
        if ":memory:" in self.url or self.url.rstrip("/") == "sqlite:":
            return create_engine(
                self.url,
                connect_args={'check_same_thread': False},
                poolclass=StaticPool,
            )
        return create_engine(
            self.url,
            connect_args={'timeout': self.timeout, 'check_same_thread': False}
        )
