"""
Query Spec - the parsed, validated form of a read request
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
import enum


class FilterOperator(str, enum.Enum):
    """Filter operators accepted as ``field__<operator>`` suffixes."""
    EXACT = "exact"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    STARTSWITH = "startswith"
    ISTARTSWITH = "istartswith"
    ENDSWITH = "endswith"
    IENDSWITH = "iendswith"
    IN = "in"
    BETWEEN = "between"
    IS = "is"


COMPARISON_SQL = {
    FilterOperator.EXACT: "=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
}

PATTERN_OPERATORS = {
    FilterOperator.CONTAINS,
    FilterOperator.ICONTAINS,
    FilterOperator.STARTSWITH,
    FilterOperator.ISTARTSWITH,
    FilterOperator.ENDSWITH,
    FilterOperator.IENDSWITH,
}

CASE_INSENSITIVE_OPERATORS = {
    FilterOperator.ICONTAINS,
    FilterOperator.ISTARTSWITH,
    FilterOperator.IENDSWITH,
}


class Aggregate(str, enum.Enum):
    """Aggregates accepted as ``field__<aggregate>`` in ``$f``."""
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


class M2MMode(str, enum.Enum):
    IDS = "id"
    FILL = "fill"


@dataclass(frozen=True)
class ColumnRef:
    """A schema-validated ``table.column`` pair."""
    table: str
    column: str


@dataclass(frozen=True)
class JoinClause:
    """``LEFT JOIN table ON table.pk = base.fk``"""
    table: str
    target_column: ColumnRef
    source_column: ColumnRef


@dataclass(frozen=True)
class SelectTerm:
    column: ColumnRef
    alias: str
    aggregate: Optional[Aggregate] = None


@dataclass(frozen=True)
class FilterCondition:
    column: ColumnRef
    operator: FilterOperator
    values: Tuple[Any, ...]
    negate: bool = False
    param: str = ""


@dataclass(frozen=True)
class FilterGroup:
    """Conditions joined with OR, rendered as one parenthesized term."""
    conditions: Tuple[FilterCondition, ...]
    param: str = "$or"


Filter = Union[FilterCondition, FilterGroup]


@dataclass(frozen=True)
class OrderTerm:
    column: Optional[ColumnRef]
    descending: bool = False
    alias: Optional[str] = None


@dataclass
class QuerySpec:
    projection: List[SelectTerm] = field(default_factory=list)
    distinct: bool = False
    joins: List[JoinClause] = field(default_factory=list)
    filters: List[Filter] = field(default_factory=list)
    group_by: List[ColumnRef] = field(default_factory=list)
    order_by: List[OrderTerm] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    preload: bool = False
    m2m: Optional[M2MMode] = None
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def custom_projection(self) -> bool:
        """True when the caller picked fields, so rows are not model-shaped."""
        return bool(self.projection)

    def add_join(self, join: JoinClause) -> None:
        """Append a join unless one to the same table already exists."""
        if all(j.table != join.table for j in self.joins):
            self.joins.append(join)
