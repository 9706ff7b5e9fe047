"""
Base Dialect Interface

Every engine driver accepts SQL with ``?`` placeholders and a positional
argument list, translates placeholders to its native style and returns a
``DriverResult``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import time

from dapi.errors import ExecutionFailure
from dapi.query.builder import QueryBuilder
from dapi.query.placeholders import QMARK, translate_placeholders
from dapi.registry import ModelSchema
from dapi.trail import DEBUG, Trail


@dataclass
class TypedResult:
    """Rows shaped like the model, keyed by field name."""
    schema: ModelSchema
    rows: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class DynamicResult:
    """Rows of a custom projection, keyed by column label."""
    columns: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)


QueryResult = Union[TypedResult, DynamicResult]


@dataclass
class DriverResult:
    row_count: int
    result: QueryResult


class BaseDialect(ABC):
    """
    Abstract base class for dialect drivers.

    Subclasses set the class attributes and implement ``_run``.
    """

    name = ""
    paramstyle = QMARK
    quote_char = '"'
    unbounded_limit: Optional[str] = None

    def __init__(self, url: str, trail: Optional[Trail] = None, debug_db: bool = False,
                 pool_size: int = 5, timeout: int = 30):
        """
        Initialize dialect.

        Args:
            url: Database URL
            trail: Sink for SQL tracing and failures
            debug_db: Trail every statement and its args at DEBUG
            pool_size: Connection pool size, for pooled engines
            timeout: Connection timeout in seconds
        """
        self.url = url
        self.trail = trail or Trail()
        self.debug_db = debug_db
        self.pool_size = pool_size
        self.timeout = timeout

    @classmethod
    def builder(cls) -> QueryBuilder:
        """A query builder configured for this engine's SQL."""
        return QueryBuilder(quote_char=cls.quote_char, unbounded_limit=cls.unbounded_limit)

    def prepare(self, sql: str) -> str:
        """Translate ``?`` placeholders to the native style."""
        return translate_placeholders(sql, self.paramstyle)

    @abstractmethod
    def _run(self, sql: str, args: Tuple[Any, ...], write: bool) -> Tuple[List[str], List[Tuple], int]:
        """
        Execute native SQL.

        Returns:
            ``(column labels, row tuples, affected row count)``
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release connections and pools."""
        pass

    def execute(self, sql: str, args: Sequence[Any], schema: Optional[ModelSchema] = None,
                dynamic: bool = False) -> DriverResult:
        """
        Run a SELECT.

        Typed results need ``schema``; their columns are mapped back to field
        names. ``dynamic`` keeps the labels the engine reports.
        """
        columns, rows = self._execute(sql, args, write=False)[:2]

        if dynamic or schema is None:
            records = [dict(zip(columns, row)) for row in rows]
            return DriverResult(row_count=len(records), result=DynamicResult(columns=columns, rows=records))

        keys = []
        for column in columns:
            spec = schema.field_for_column(column)
            keys.append(spec.name if spec is not None else column)
        records = [dict(zip(keys, row)) for row in rows]
        return DriverResult(row_count=len(records), result=TypedResult(schema=schema, rows=records))

    def execute_write(self, sql: str, args: Sequence[Any]) -> int:
        """Run an INSERT/UPDATE/DELETE in its own transaction; return affected rows."""
        return self._execute(sql, args, write=True)[2]

    def _execute(self, sql: str, args: Sequence[Any], write: bool) -> Tuple[List[str], List[Tuple], int]:
        args = tuple(args)
        native = self.prepare(sql)
        if self.debug_db:
            self.trail(DEBUG, "SQL: %s ARGS: %r", native, list(args))

        start_time = time.time()
        try:
            outcome = self._run(native, args, write)
        except Exception as e:
            raise ExecutionFailure(f"Unable to execute SQL. {str(e)}", sql=native, args=list(args)) from e

        if self.debug_db:
            execution_time_ms = int((time.time() - start_time) * 1000)
            self.trail(DEBUG, "%s rows in %sms", len(outcome[1]) if not write else outcome[2], execution_time_ms)
        return outcome

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
