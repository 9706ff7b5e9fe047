"""
Dialects Package - per-engine SQL execution
"""
from typing import Dict, Type
import structlog

from dapi.errors import ConfigurationError
from dapi.dialects.base import BaseDialect, DriverResult, DynamicResult, QueryResult, TypedResult
from dapi.dialects.engine import SQLAlchemyDialect
from dapi.dialects.sqlite import SQLiteDialect
from dapi.dialects.postgres import PostgreSQLDialect
from dapi.dialects.mysql import MySQLDialect
from dapi.dialects.duckdb import DuckDBDialect

logger = structlog.get_logger()

DIALECTS: Dict[str, Type[BaseDialect]] = {
    "sqlite": SQLiteDialect,
    "postgresql": PostgreSQLDialect,
    "postgres": PostgreSQLDialect,
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "duckdb": DuckDBDialect,
}


def get_dialect_class(db_type: str) -> Type[BaseDialect]:
    """Get dialect class for database type."""
    dialect_class = DIALECTS.get((db_type or "").strip().lower())
    if not dialect_class:
        raise ConfigurationError(f"Unsupported database type: {db_type}")
    return dialect_class


def get_dialect(db_type: str, url: str, **kwargs) -> BaseDialect:
    """
    Build the driver for ``db_type``.

    Raises:
        ConfigurationError: The engine is not supported
    """
    dialect_class = get_dialect_class(db_type)
    dialect = dialect_class(url, **kwargs)
    logger.info("dialect_ready", db_type=dialect.name)
    return dialect


__all__ = [
    "BaseDialect",
    "DriverResult",
    "DynamicResult",
    "QueryResult",
    "TypedResult",
    "SQLAlchemyDialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "DuckDBDialect",
    "DIALECTS",
    "get_dialect_class",
    "get_dialect",
]
