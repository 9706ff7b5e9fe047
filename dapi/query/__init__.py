"""
Query Package - parameter parsing and SQL building
"""
from dapi.query.spec import (
    Aggregate,
    ColumnRef,
    FilterCondition,
    FilterGroup,
    FilterOperator,
    JoinClause,
    M2MMode,
    OrderTerm,
    QuerySpec,
    SelectTerm,
)
from dapi.query.params import ParameterParser, coerce_value, parse_params
from dapi.query.builder import QueryBuilder, escape_like
from dapi.query.placeholders import count_placeholders, translate_placeholders

__all__ = [
    "Aggregate",
    "ColumnRef",
    "FilterCondition",
    "FilterGroup",
    "FilterOperator",
    "JoinClause",
    "M2MMode",
    "OrderTerm",
    "QuerySpec",
    "SelectTerm",
    "ParameterParser",
    "coerce_value",
    "parse_params",
    "QueryBuilder",
    "escape_like",
    "count_placeholders",
    "translate_placeholders",
]
