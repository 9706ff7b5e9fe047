"""
Tests for dialect drivers and placeholder translation
"""
import duckdb
import pytest

from dapi.dialects import (
    DuckDBDialect,
    DynamicResult,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    TypedResult,
    get_dialect,
    get_dialect_class,
)
from dapi.dialects.duckdb import database_from_url
from dapi.errors import ConfigurationError, ExecutionFailure
from dapi.query import count_placeholders, parse_params, translate_placeholders
from dapi.query.placeholders import FORMAT, NUMERIC, QMARK
from tests.library import AUTHORS, BOOKS


@pytest.fixture
def duck(trail):
    """DuckDB copy of the author and book tables."""
    connection = duckdb.connect(":memory:")
    connection.execute("CREATE TABLE author (id INTEGER PRIMARY KEY, name VARCHAR, email VARCHAR)")
    connection.execute(
        "CREATE TABLE book (id INTEGER PRIMARY KEY, title VARCHAR, year INTEGER,"
        " price DOUBLE, tenant_id INTEGER, author_id INTEGER)"
    )
    connection.executemany(
        "INSERT INTO author VALUES (?, ?, ?)",
        [[a["id"], a["name"], a["email"]] for a in AUTHORS],
    )
    connection.executemany(
        "INSERT INTO book VALUES (?, ?, ?, ?, ?, ?)",
        [[b["id"], b["title"], b["year"], b["price"], b["tenant_id"], b["author_id"]] for b in BOOKS],
    )
    dialect = DuckDBDialect("duckdb:///:memory:", connection=connection, trail=trail)
    yield dialect
    dialect.close()


class TestPlaceholders:
    """Translation of ? placeholders"""

    def test_qmark_unchanged(self):
        sql = "SELECT * FROM book WHERE id = ?"
        assert translate_placeholders(sql, QMARK) == sql

    def test_format_doubles_percent(self):
        sql = "SELECT '100%' AS p FROM book WHERE title LIKE ? ESCAPE '!' AND id = ?"
        assert translate_placeholders(sql, FORMAT) == (
            "SELECT '100%%' AS p FROM book WHERE title LIKE %s ESCAPE '!' AND id = %s"
        )

    def test_numeric_positions(self):
        sql = "SELECT * FROM book WHERE id IN (?, ?) AND title <> '?' AND year > ?"
        assert translate_placeholders(sql, NUMERIC) == (
            "SELECT * FROM book WHERE id IN ($1, $2) AND title <> '?' AND year > $3"
        )

    def test_count_skips_quoted(self):
        assert count_placeholders("a = ? AND b = '?' AND \"c?\" = ?") == 2

    def test_unknown_style(self):
        with pytest.raises(ValueError):
            translate_placeholders("SELECT 1", "named")


class TestDialectFactory:
    """Dialect selection"""

    def test_unsupported_engine_fails_fast(self):
        with pytest.raises(ConfigurationError):
            get_dialect("oracle", "oracle://db")

    def test_dialect_classes(self):
        assert get_dialect_class("PostgreSQL") is PostgreSQLDialect
        assert get_dialect_class("mariadb") is MySQLDialect
        assert get_dialect_class("duckdb") is DuckDBDialect

    def test_sqlite_from_url(self):
        dialect = get_dialect("sqlite", "sqlite://")
        try:
            assert isinstance(dialect, SQLiteDialect)
            assert dialect.execute("SELECT 1 AS one", [], dynamic=True).result.rows == [{"one": 1}]
        finally:
            dialect.close()

    def test_mysql_rendering(self):
        builder = MySQLDialect.builder()
        assert builder.quote_char == "`"
        assert builder.unbounded_limit == "18446744073709551615"
        assert PostgreSQLDialect.paramstyle == FORMAT

    def test_duckdb_url(self):
        assert database_from_url("duckdb:///:memory:") == ":memory:"
        assert database_from_url("duckdb:///data/lib.duckdb") == "data/lib.duckdb"
        assert database_from_url("lib.duckdb") == "lib.duckdb"


class TestSQLiteDialect:
    """Execution against SQLite"""

    def test_typed_result(self, dialect, registry):
        schema = registry.get_schema("Book")
        outcome = dialect.execute("SELECT * FROM book WHERE id = ?", [1], schema=schema)

        assert outcome.row_count == 1
        assert isinstance(outcome.result, TypedResult)
        assert outcome.result.rows[0]["title"] == "Dune"

    def test_dynamic_result(self, dialect):
        outcome = dialect.execute('SELECT "title" FROM book WHERE year = ?', [1969], dynamic=True)

        assert isinstance(outcome.result, DynamicResult)
        assert outcome.result.columns == ["title"]
        assert outcome.row_count == 2

    def test_failure_keeps_sql_and_args(self, dialect):
        with pytest.raises(ExecutionFailure) as exc:
            dialect.execute("SELECT * FROM missing WHERE id = ?", [1])

        assert exc.value.message.startswith("Unable to execute SQL.")
        assert exc.value.sql == "SELECT * FROM missing WHERE id = ?"
        assert exc.value.sql_args == [1]

    def test_write(self, dialect):
        assert dialect.execute_write("UPDATE book SET price = ? WHERE tenant_id = ?", [1.0, 7]) == 2
        rows = dialect.execute("SELECT price FROM book WHERE tenant_id = ?", [7], dynamic=True).result.rows
        assert rows == [{"price": 1.0}, {"price": 1.0}]

    def test_debug_db_trails_statements(self, data_engine, trail, trail_logger):
        dialect = SQLiteDialect("sqlite://", engine=data_engine, trail=trail, debug_db=True)
        dialect.execute("SELECT * FROM book WHERE id = ?", [2], dynamic=True)

        assert "SQL: SELECT * FROM book WHERE id = ? ARGS: [2]" in trail_logger.messages("DEBUG")


class TestDuckDBDialect:
    """Execution against DuckDB"""

    def test_numeric_placeholders(self, duck):
        assert duck.prepare("SELECT * FROM book WHERE id = ? AND year = ?") == (
            "SELECT * FROM book WHERE id = $1 AND year = $2"
        )

    def test_write_returns_count(self, duck):
        assert duck.execute_write("DELETE FROM book WHERE tenant_id = ?", [7]) == 2

    def test_failure(self, duck):
        with pytest.raises(ExecutionFailure):
            duck.execute("SELECT * FROM missing", [])


QUERIES = [
    {"$order": "id"},
    {"title__icontains": "DUNE", "$order": "id"},
    {"title__contains": "100%", "$order": "id"},
    {"title__contains": "_", "$order": "id"},
    {"!author_id": "1", "$order": "id"},
    {"year__between": "1960,1970", "id__in": "1,3,5", "$order": "-year,title"},
    {"author__name__startswith": "Ursula", "$order": "id"},
    {"$or": "year__lt=1966|price__is=null", "$order": "id"},
    {"$order": "id", "$limit": "2", "$offset": "1"},
    {"$order": "id", "$offset": "3"},
    {"$f": "title,year", "tenant_id": "5", "$order": "id"},
    {"$f": "title,author__name", "$order": "id"},
]


class TestCrossDialect:
    """The same request gives the same rows on SQLite and DuckDB"""

    @pytest.mark.parametrize("params", QUERIES)
    def test_equivalent_results(self, params, registry, dialect, duck):
        schema = registry.get_schema("Book")
        results = []
        for engine in (dialect, duck):
            spec = parse_params(schema, registry, params)
            sql, args = engine.builder().build(schema, spec)
            outcome = engine.execute(sql, args, schema=schema, dynamic=spec.custom_projection)
            results.append(outcome.result.rows)

        assert results[0] == results[1]

    def test_contains_matches_literally(self, registry, dialect, duck):
        schema = registry.get_schema("Book")
        for engine in (dialect, duck):
            spec = parse_params(schema, registry, {"title__contains": "_"})
            sql, args = engine.builder().build(schema, spec)
            rows = engine.execute(sql, args, schema=schema).result.rows
            assert [r["id"] for r in rows] == [5]
