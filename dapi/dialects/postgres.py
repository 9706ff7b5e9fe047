"""
PostgreSQL Dialect
"""
from dapi.dialects.engine import SQLAlchemyDialect
from dapi.query.placeholders import FORMAT


class PostgreSQLDialect(SQLAlchemyDialect):
    """PostgreSQL driver (psycopg2): ``%s`` placeholders, literal ``%`` doubled."""

    name = "postgresql"
    paramstyle = FORMAT
    quote_char = '"'
