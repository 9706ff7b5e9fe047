"""
Query Builder

Composes parameterized SQL from a ``ModelSchema`` and a ``QuerySpec``.
Identifiers come only from the schema; values only ever travel in the
positional argument list.
"""
from typing import Any, List, Mapping, Optional, Sequence, Tuple
import re

from dapi.errors import BadRequest, ExecutionFailure
from dapi.registry import ListModifier, ModelSchema
from dapi.query.placeholders import count_placeholders
from dapi.query.spec import (
    CASE_INSENSITIVE_OPERATORS, COMPARISON_SQL, PATTERN_OPERATORS,
    ColumnRef, Filter, FilterCondition, FilterGroup, FilterOperator,
    QuerySpec, SelectTerm,
)

_BARE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_OR_KEYWORD = re.compile(r"\bOR\b", re.IGNORECASE)

RESERVED_WORDS = {
    "all", "and", "as", "asc", "between", "by", "case", "check", "column",
    "constraint", "create", "default", "delete", "desc", "distinct", "drop",
    "else", "end", "exists", "from", "group", "having", "in", "index",
    "insert", "into", "is", "join", "key", "like", "limit", "not", "null",
    "offset", "on", "or", "order", "primary", "references", "select", "set",
    "table", "then", "to", "union", "unique", "update", "user", "using",
    "values", "when", "where",
}

LIKE_ESCAPE = "!"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


class QueryBuilder:
    """
    Dialect-agnostic SQL builder.

    Args:
        quote_char: Identifier quote used for projected columns
        unbounded_limit: LIMIT text to emit when only an OFFSET is given,
            for engines that cannot parse a bare OFFSET
    """

    SELECT_SQL = "SELECT {FIELDS} FROM {TABLE_NAME}"
    SELECT_DISTINCT_SQL = "SELECT DISTINCT {FIELDS} FROM {TABLE_NAME}"

    def __init__(self, quote_char: str = '"', unbounded_limit: Optional[str] = None):
        self.quote_char = quote_char
        self.unbounded_limit = unbounded_limit

    # ------------------------------------------------------------------
    # Identifiers
    # ------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        if self.quote_char in identifier:
            raise ExecutionFailure(f"Invalid identifier: {identifier!r}")
        return f"{self.quote_char}{identifier}{self.quote_char}"

    def ident(self, identifier: str) -> str:
        """Emit an identifier bare when safe, quoted otherwise."""
        if _BARE_IDENTIFIER.match(identifier) and identifier.lower() not in RESERVED_WORDS:
            return identifier
        return self.quote(identifier)

    def column(self, ref: ColumnRef, qualify: bool) -> str:
        if qualify:
            return f"{self.ident(ref.table)}.{self.ident(ref.column)}"
        return self.ident(ref.column)

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def build(self, schema: ModelSchema, spec: QuerySpec,
              list_modifier: Optional[ListModifier] = None,
              user: Any = None) -> Tuple[str, List[Any]]:
        """
        Build a SELECT statement.

        Returns:
            ``(sql, args)`` where ``args`` holds user-filter arguments in
            filter order followed by list-modifier arguments
        """
        qualify = bool(spec.joins)
        table = self.ident(schema.table)

        sql = self.SELECT_DISTINCT_SQL if spec.distinct else self.SELECT_SQL
        sql = sql.replace("{TABLE_NAME}", table)

        fields = ", ".join(self._select_term(t, qualify) for t in spec.projection)
        if not fields:
            fields = f"{table}.*" if qualify else "*"
        sql = sql.replace("{FIELDS}", fields)

        for join in spec.joins:
            sql += (
                f" LEFT JOIN {self.ident(join.table)}"
                f" ON {self.column(join.target_column, True)} = {self.column(join.source_column, True)}"
            )

        where, args = self.where_clause(schema, spec.filters, list_modifier, user, qualify)
        if where:
            sql += " WHERE " + where

        if spec.group_by:
            sql += " GROUP BY " + ", ".join(self.column(c, qualify) for c in spec.group_by)

        if spec.order_by:
            terms = []
            for term in spec.order_by:
                target = self.quote(term.alias) if term.alias else self.column(term.column, qualify)
                terms.append(f"{target} DESC" if term.descending else target)
            sql += " ORDER BY " + ", ".join(terms)

        if spec.limit is not None:
            sql += f" LIMIT {int(spec.limit)}"
        elif spec.offset is not None and self.unbounded_limit:
            sql += f" LIMIT {self.unbounded_limit}"

        if spec.offset is not None:
            sql += f" OFFSET {int(spec.offset)}"

        return sql, args

    def build_get(self, schema: ModelSchema, pk_value: Any,
                  list_modifier: Optional[ListModifier] = None,
                  user: Any = None) -> Tuple[str, List[Any]]:
        """Build the single-row fetch ``SELECT * FROM t WHERE pk = ?``."""
        spec = QuerySpec(filters=[FilterCondition(
            column=ColumnRef(schema.table, schema.pk_column),
            operator=FilterOperator.EXACT,
            values=(pk_value,),
            param=schema.primary_key,
        )])
        return self.build(schema, spec, list_modifier, user)

    def _select_term(self, term: SelectTerm, qualify: bool) -> str:
        if qualify:
            column = f"{self.quote(term.column.table)}.{self.quote(term.column.column)}"
        else:
            column = self.quote(term.column.column)

        if term.aggregate is not None:
            return f"{term.aggregate.value.upper()}({column}) AS {self.quote(term.alias)}"
        if term.alias != term.column.column or qualify:
            return f"{column} AS {self.quote(term.alias)}"
        return column

    # ------------------------------------------------------------------
    # WHERE
    # ------------------------------------------------------------------

    def where_clause(self, schema: ModelSchema, filters: Sequence[Filter],
                     list_modifier: Optional[ListModifier], user: Any,
                     qualify: bool = False) -> Tuple[str, List[Any]]:
        """Join user filters with AND, then append the list modifier."""
        fragments: List[str] = []
        args: List[Any] = []

        for item in filters:
            fragment, item_args = self.render_filter(item, qualify)
            fragments.append(fragment)
            args.extend(item_args)

        if list_modifier is not None:
            fragment, lm_args = list_modifier(schema, user)
            lm_args = list(lm_args or [])
            if fragment:
                if count_placeholders(fragment) != len(lm_args):
                    raise ExecutionFailure(
                        f"List modifier for {schema.name} returned "
                        f"{count_placeholders(fragment)} placeholders and {len(lm_args)} args",
                        sql=fragment,
                        args=lm_args,
                    )
                if _OR_KEYWORD.search(fragment):
                    fragment = f"({fragment})"
                fragments.append(fragment)
                args.extend(lm_args)

        return " AND ".join(fragments), args

    def render_filter(self, item: Filter, qualify: bool) -> Tuple[str, List[Any]]:
        if isinstance(item, FilterGroup):
            parts = []
            args: List[Any] = []
            for condition in item.conditions:
                fragment, condition_args = self.render_condition(condition, qualify)
                parts.append(fragment)
                args.extend(condition_args)
            return "(" + " OR ".join(parts) + ")", args
        return self.render_condition(item, qualify)

    def render_condition(self, condition: FilterCondition, qualify: bool) -> Tuple[str, List[Any]]:
        column = self.column(condition.column, qualify)
        operator = condition.operator
        values = list(condition.values)

        if operator in COMPARISON_SQL:
            fragment, args = f"{column} {COMPARISON_SQL[operator]} ?", values
        elif operator in PATTERN_OPERATORS:
            value = escape_like(str(values[0]))
            if operator in CASE_INSENSITIVE_OPERATORS:
                column = f"LOWER({column})"
                value = value.lower()
            if operator in (FilterOperator.CONTAINS, FilterOperator.ICONTAINS):
                value = f"%{value}%"
            elif operator in (FilterOperator.STARTSWITH, FilterOperator.ISTARTSWITH):
                value = f"{value}%"
            else:
                value = f"%{value}"
            fragment, args = f"{column} LIKE ? ESCAPE '{LIKE_ESCAPE}'", [value]
        elif operator == FilterOperator.IN:
            fragment = f"{column} IN ({', '.join('?' for _ in values)})"
            args = values
        elif operator == FilterOperator.BETWEEN:
            fragment, args = f"{column} BETWEEN ? AND ?", values
        elif operator == FilterOperator.IS:
            fragment = f"{column} IS NULL" if values[0] == "null" else f"{column} IS NOT NULL"
            args = []
        else:
            raise BadRequest(f"Unsupported operator '{operator.value}'", param=condition.param)

        if condition.negate:
            fragment = f"NOT ({fragment})"
        return fragment, args

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _write_columns(self, schema: ModelSchema, values: Mapping[str, Any]) -> Tuple[List[str], List[Any]]:
        columns, args = [], []
        for key, value in values.items():
            field = schema.get_field(key)
            if field is None or field.private or not field.is_scalar:
                raise BadRequest(f"Unknown field '{key}'", param=key)
            columns.append(self.ident(field.column))
            args.append(value)
        if not columns:
            raise BadRequest("No fields to write")
        return columns, args

    def _write_filter(self, schema: ModelSchema, spec: QuerySpec,
                      list_modifier: Optional[ListModifier], user: Any) -> Tuple[str, List[Any]]:
        if spec.joins:
            raise BadRequest("Related-field filters are not allowed on writes")
        if not spec.filters:
            raise BadRequest("Refusing to write without a filter")
        return self.where_clause(schema, spec.filters, list_modifier, user)

    def build_insert(self, schema: ModelSchema, values: Mapping[str, Any]) -> Tuple[str, List[Any]]:
        """``INSERT INTO t (a, b) VALUES (?, ?)``"""
        columns, args = self._write_columns(schema, values)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {self.ident(schema.table)} ({', '.join(columns)}) VALUES ({placeholders})"
        return sql, args

    def build_update(self, schema: ModelSchema, values: Mapping[str, Any], spec: QuerySpec,
                     list_modifier: Optional[ListModifier] = None,
                     user: Any = None) -> Tuple[str, List[Any]]:
        """``UPDATE t SET a = ? WHERE ...``; SET args precede WHERE args."""
        columns, args = self._write_columns(schema, values)
        where, where_args = self._write_filter(schema, spec, list_modifier, user)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        sql = f"UPDATE {self.ident(schema.table)} SET {assignments} WHERE {where}"
        return sql, args + where_args

    def build_delete(self, schema: ModelSchema, spec: QuerySpec,
                     list_modifier: Optional[ListModifier] = None,
                     user: Any = None) -> Tuple[str, List[Any]]:
        """``DELETE FROM t WHERE ...``"""
        where, args = self._write_filter(schema, spec, list_modifier, user)
        return f"DELETE FROM {self.ident(schema.table)} WHERE {where}", args
