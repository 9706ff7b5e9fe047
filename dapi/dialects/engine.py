"""
SQLAlchemy-backed dialects

Statements are already rendered, so they go straight to the DB-API cursor
through ``exec_driver_sql``; SQLAlchemy supplies pooling and transactions.
"""
from typing import Any, List, Optional, Tuple
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from dapi.dialects.base import BaseDialect


class SQLAlchemyDialect(BaseDialect):
    """Dialect driver over a pooled SQLAlchemy engine."""

    def __init__(self, url: str, engine: Optional[Engine] = None, **kwargs):
        super().__init__(url, **kwargs)
        self._engine = engine if engine is not None else self.create_engine()

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_engine(self) -> Engine:
        return create_engine(
            self.url,
            poolclass=QueuePool,
            pool_size=self.pool_size,
            max_overflow=self.pool_size * 2,
            pool_pre_ping=True,
            connect_args={'connect_timeout': self.timeout}
        )

    def _run(self, sql: str, args: Tuple[Any, ...], write: bool) -> Tuple[List[str], List[Tuple], int]:
        if write:
            with self._engine.begin() as conn:
                result = conn.exec_driver_sql(sql, args)
                return [], [], result.rowcount

        with self._engine.connect() as conn:
            result = conn.exec_driver_sql(sql, args)
            if not result.returns_rows:
                return [], [], result.rowcount
            columns = list(result.keys())
            rows = [tuple(row) for row in result]
            return columns, rows, len(rows)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
