"""
MySQL/MariaDB Dialect
"""
from dapi.dialects.engine import SQLAlchemyDialect
from dapi.query.placeholders import FORMAT


class MySQLDialect(SQLAlchemyDialect):
    """MySQL/MariaDB driver (PyMySQL): ``%s`` placeholders, backtick identifiers."""

    name = "mysql"
    paramstyle = FORMAT
    quote_char = "`"
    # Largest unsigned BIGINT; MySQL has no OFFSET without LIMIT
    unbounded_limit = "18446744073709551615"
