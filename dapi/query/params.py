"""
Parameter Parser

Turns raw query-string parameters into a validated ``QuerySpec``.

Key grammar::

    $f=title,author__name,id__count    projection (custom result shape)
    $distinct=1                        SELECT DISTINCT
    [!]field[__relfield][__op]=value   filter, "!" negates
    $or=title=Dune|year__gt=1970       OR group, same filter grammar
    $groupby=author_id                 GROUP BY
    $order=-year,title                 ORDER BY, "-" means DESC
    $limit=10&$offset=20               pagination
    $preload=1                         load related entities
    $m2m=id|fill                       expand many-to-many fields

Every identifier is resolved against the registry; anything that does not
resolve is a ``BadRequest`` naming the offending parameter.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional, Tuple

from dapi.errors import BadRequest
from dapi.registry import FieldSpec, ModelSchema, RelationKind, SchemaRegistry
from dapi.query.spec import (
    PATTERN_OPERATORS, Aggregate, ColumnRef, FilterCondition, FilterGroup,
    FilterOperator, JoinClause, M2MMode, OrderTerm, QuerySpec, SelectTerm,
)

RESERVED_KEYS = {
    "$f", "$distinct", "$preload", "$m2m", "$limit", "$offset",
    "$order", "$groupby", "$or",
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}

# Largest signed BIGINT; engines reject larger LIMIT/OFFSET values
MAX_PAGINATION = 2 ** 63 - 1

OPERATORS = {op.value: op for op in FilterOperator}
AGGREGATES = {agg.value: agg for agg in Aggregate}


class ParameterParser:
    """Parse request parameters for one model."""

    def __init__(self, schema: ModelSchema, registry: SchemaRegistry):
        self.schema = schema
        self.registry = registry

    def parse(self, params: Mapping[str, str]) -> QuerySpec:
        spec = QuerySpec(params=dict(params))

        for key, value in params.items():
            if key.startswith("$") and key not in RESERVED_KEYS:
                raise BadRequest(f"Unknown parameter '{key}'", param=key)

        spec.distinct = self._parse_flag(params, "$distinct")
        spec.preload = self._parse_flag(params, "$preload")
        spec.m2m = self._parse_m2m(params.get("$m2m"))
        spec.limit = self._parse_non_negative(params, "$limit")
        spec.offset = self._parse_non_negative(params, "$offset")

        if params.get("$f"):
            spec.projection = self._parse_projection(spec, params["$f"])

        for key, value in params.items():
            if key.startswith("$"):
                continue
            spec.filters.append(self._parse_filter(spec, key, value, param=key))

        if params.get("$or"):
            spec.filters.append(self._parse_or_group(spec, params["$or"]))

        if params.get("$groupby"):
            spec.group_by = [
                self._resolve_path(spec, term.split("__"), "$groupby")[0]
                for term in self._split_list(params["$groupby"])
            ]

        if params.get("$order"):
            spec.order_by = self._parse_order(spec, params["$order"])

        return spec

    def parse_single(self, params: Mapping[str, str]) -> QuerySpec:
        """
        Parse parameters of a single-record fetch.

        Only ``$preload`` and ``$m2m`` apply; everything else is ignored.
        """
        return QuerySpec(
            preload=self._parse_flag(params, "$preload"),
            m2m=self._parse_m2m(params.get("$m2m")),
            params=dict(params),
        )

    # ------------------------------------------------------------------
    # Flags and pagination
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_flag(params: Mapping[str, str], key: str) -> bool:
        value = params.get(key)
        if value is None:
            return False
        value = value.strip().lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise BadRequest(f"Invalid value for {key}: '{value}'", param=key)

    @staticmethod
    def _parse_m2m(value: Optional[str]) -> Optional[M2MMode]:
        if value is None or value.strip() in ("", "0"):
            return None
        value = value.strip().lower()
        if value in ("1", "fill"):
            return M2MMode.FILL
        if value == "id":
            return M2MMode.IDS
        raise BadRequest(f"Invalid value for $m2m: '{value}'", param="$m2m")

    @staticmethod
    def _parse_non_negative(params: Mapping[str, str], key: str) -> Optional[int]:
        value = params.get(key)
        if value is None:
            return None
        value = value.strip()
        if not (value.isascii() and value.isdigit()):
            raise BadRequest(f"{key} must be a non-negative integer", param=key)
        number = int(value)
        if number > MAX_PAGINATION:
            raise BadRequest(f"{key} must not exceed {MAX_PAGINATION}", param=key)
        return number

    @staticmethod
    def _split_list(value: str) -> List[str]:
        return [v.strip() for v in value.split(",") if v.strip()]

    # ------------------------------------------------------------------
    # Identifier resolution
    # ------------------------------------------------------------------

    def _resolve_path(self, spec: QuerySpec, parts: List[str], param: str) -> Tuple[ColumnRef, FieldSpec]:
        """
        Resolve ``field`` or ``relation__field`` to a column.

        Relation paths add a LEFT JOIN to ``spec``. Only ONE_TO_ONE
        relations are joinable.
        """
        if not parts or any(not p for p in parts):
            raise BadRequest(f"Invalid field reference in '{param}'", param=param)

        if len(parts) == 1:
            field = self.schema.get_field(parts[0])
            if field is None or field.private or not field.is_scalar:
                raise BadRequest(f"Unknown field '{parts[0]}'", param=param)
            return ColumnRef(self.schema.table, field.column), field

        if len(parts) == 2:
            relation = self.schema.get_field(parts[0])
            if relation is None or relation.private:
                raise BadRequest(f"Unknown field '{parts[0]}'", param=param)
            if relation.relation != RelationKind.ONE_TO_ONE:
                raise BadRequest(f"Field '{parts[0]}' cannot be joined", param=param)

            target = self.registry.get_schema(relation.target)
            if target is None:
                raise BadRequest(f"Unknown model '{relation.target}'", param=param)
            if target.table == self.schema.table:
                raise BadRequest(f"Self-referencing join on '{parts[0]}' is not supported", param=param)

            field = target.get_field(parts[1])
            if field is None or field.private or not field.is_scalar:
                raise BadRequest(f"Unknown field '{parts[1]}' on {target.name}", param=param)

            spec.add_join(JoinClause(
                table=target.table,
                target_column=ColumnRef(target.table, target.pk_column),
                source_column=ColumnRef(self.schema.table, relation.foreign_key),
            ))
            return ColumnRef(target.table, field.column), field

        raise BadRequest(f"Field path '{'__'.join(parts)}' is too deep", param=param)

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def _parse_projection(self, spec: QuerySpec, value: str) -> List[SelectTerm]:
        terms: List[SelectTerm] = []
        for term in self._split_list(value):
            parts = term.split("__")
            aggregate = None
            if len(parts) > 1 and parts[-1].lower() in AGGREGATES:
                aggregate = AGGREGATES[parts[-1].lower()]
                parts = parts[:-1]
            column, field = self._resolve_path(spec, parts, "$f")
            alias = term if (aggregate or len(parts) > 1) else field.name
            terms.append(SelectTerm(column=column, alias=alias, aggregate=aggregate))
        if not terms:
            raise BadRequest("$f must name at least one field", param="$f")
        return terms

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _parse_filter(self, spec: QuerySpec, key: str, value: str, param: str) -> FilterCondition:
        negate = key.startswith("!")
        if negate:
            key = key[1:]

        parts = key.split("__")
        operator = FilterOperator.EXACT
        if len(parts) > 1 and parts[-1] in OPERATORS:
            operator = OPERATORS[parts[-1]]
            parts = parts[:-1]

        column, field = self._resolve_path(spec, parts, param)
        values = self._filter_values(field, operator, value, param)
        return FilterCondition(
            column=column,
            operator=operator,
            values=values,
            negate=negate,
            param=param,
        )

    def _parse_or_group(self, spec: QuerySpec, value: str) -> FilterGroup:
        conditions = []
        for expr in value.split("|"):
            if "=" not in expr:
                raise BadRequest(f"Invalid $or expression '{expr}'", param="$or")
            key, _, raw = expr.partition("=")
            key = key.strip()
            if not key or key.startswith("$"):
                raise BadRequest(f"Invalid $or expression '{expr}'", param="$or")
            conditions.append(self._parse_filter(spec, key, raw, param="$or"))
        return FilterGroup(conditions=tuple(conditions))

    def _filter_values(self, field: FieldSpec, operator: FilterOperator,
                       value: str, param: str) -> Tuple[Any, ...]:
        if operator == FilterOperator.IS:
            normalized = value.strip().lower()
            if normalized not in ("null", "notnull"):
                raise BadRequest(f"{param} expects 'null' or 'notnull'", param=param)
            return (normalized,)

        if operator == FilterOperator.IN:
            items = self._split_list(value)
            if not items:
                raise BadRequest(f"{param} needs at least one value", param=param)
            return tuple(coerce_value(field, item, param) for item in items)

        if operator == FilterOperator.BETWEEN:
            items = self._split_list(value)
            if len(items) != 2:
                raise BadRequest(f"{param} needs exactly two values", param=param)
            return tuple(coerce_value(field, item, param) for item in items)

        if operator in PATTERN_OPERATORS:
            return (value,)

        return (coerce_value(field, value, param),)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def _parse_order(self, spec: QuerySpec, value: str) -> List[OrderTerm]:
        aliases = {t.alias for t in spec.projection if t.aggregate is not None}
        terms = []
        for term in self._split_list(value):
            descending = term.startswith("-")
            name = term.lstrip("-+")
            if name in aliases:
                terms.append(OrderTerm(column=None, descending=descending, alias=name))
                continue
            column, _ = self._resolve_path(spec, name.split("__"), "$order")
            terms.append(OrderTerm(column=column, descending=descending))
        return terms


def coerce_value(field: FieldSpec, value: str, param: str) -> Any:
    """Convert a query-string value to the field's Python type."""
    python_type = field.python_type
    try:
        if python_type is bool:
            normalized = value.strip().lower()
            if normalized in TRUE_VALUES - {""}:
                return True
            if normalized in FALSE_VALUES - {""}:
                return False
            raise ValueError(value)
        if python_type is int:
            return int(value)
        if python_type is float:
            return float(value)
        if python_type is Decimal:
            return Decimal(value)
        if python_type is datetime:
            return datetime.fromisoformat(value)
        if python_type is date:
            return date.fromisoformat(value)
    except (ValueError, InvalidOperation):
        raise BadRequest(f"Invalid value '{value}' for field '{field.name}'", param=param)
    return value


def parse_params(schema: ModelSchema, registry: SchemaRegistry, params: Mapping[str, str]) -> QuerySpec:
    """Parse ``params`` for ``schema``."""
    return ParameterParser(schema, registry).parse(params)
