"""
Tests for query-string parameter parsing
"""
from datetime import date

import pytest

from dapi.errors import BadRequest
from dapi.query import Aggregate, FilterGroup, FilterOperator, M2MMode, parse_params
from dapi.query.params import coerce_value
from dapi.registry import FieldSpec


def parse(registry, model, params):
    return parse_params(registry.get_schema(model), registry, params)


class TestFilters:
    """Filter keys: [!]field[__relfield][__op]"""

    def test_exact_filter_is_coerced(self, registry):
        spec = parse(registry, "Book", {"year": "1965"})

        condition = spec.filters[0]
        assert condition.column.column == "year"
        assert condition.operator == FilterOperator.EXACT
        assert condition.values == (1965,)
        assert condition.negate is False

    def test_operator_suffix(self, registry):
        spec = parse(registry, "Book", {"year__gte": "1969", "title__icontains": "dune"})

        assert [f.operator for f in spec.filters] == [FilterOperator.GTE, FilterOperator.ICONTAINS]
        assert spec.filters[1].values == ("dune",)

    def test_negation(self, registry):
        spec = parse(registry, "Book", {"!author_id": "1"})
        assert spec.filters[0].negate is True

    def test_in_and_between_split_values(self, registry):
        spec = parse(registry, "Book", {"id__in": "1, 2,3", "year__between": "1960,1970"})

        assert spec.filters[0].values == (1, 2, 3)
        assert spec.filters[1].values == (1960, 1970)

    def test_between_needs_two_values(self, registry):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"year__between": "1960"})
        assert exc.value.param == "year__between"

    def test_is_null(self, registry):
        spec = parse(registry, "Book", {"price__is": "NULL"})
        assert spec.filters[0].values == ("null",)

        with pytest.raises(BadRequest):
            parse(registry, "Book", {"price__is": "zero"})

    def test_related_field_adds_join_once(self, registry):
        spec = parse(registry, "Book", {"author__name": "Frank Herbert", "author__id__gt": "0"})

        assert len(spec.joins) == 1
        join = spec.joins[0]
        assert join.table == "author"
        assert (join.target_column.table, join.target_column.column) == ("author", "id")
        assert (join.source_column.table, join.source_column.column) == ("book", "author_id")
        assert spec.filters[0].column.table == "author"

    def test_or_group(self, registry):
        spec = parse(registry, "Book", {"tenant_id": "5", "$or": "year__lt=1966|price__is=null"})

        assert len(spec.filters) == 2
        group = spec.filters[1]
        assert isinstance(group, FilterGroup)
        assert [c.operator for c in group.conditions] == [FilterOperator.LT, FilterOperator.IS]

    def test_invalid_or_expression(self, registry):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"$or": "year"})
        assert exc.value.param == "$or"


class TestRejections:
    """Anything that does not resolve against the schema is refused"""

    def test_injection_in_key_is_rejected(self, registry):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"id; DROP TABLE x": "1"})
        assert exc.value.param == "id; DROP TABLE x"

    def test_unknown_field(self, registry):
        with pytest.raises(BadRequest):
            parse(registry, "Book", {"isbn": "123"})

    def test_unknown_dollar_key(self, registry):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"$where": "1=1"})
        assert exc.value.param == "$where"

    def test_private_field(self, registry):
        with pytest.raises(BadRequest):
            parse(registry, "Author", {"email": "frank@example.com"})
        with pytest.raises(BadRequest):
            parse(registry, "Author", {"$f": "name,email"})

    def test_non_joinable_relations(self, registry):
        with pytest.raises(BadRequest):
            parse(registry, "Book", {"tags__name": "space"})
        with pytest.raises(BadRequest):
            parse(registry, "Author", {"books__title": "Dune"})

    def test_relation_without_column(self, registry):
        with pytest.raises(BadRequest):
            parse(registry, "Book", {"author": "1"})

    def test_bad_value_type(self, registry):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"year": "nineteen"})
        assert exc.value.param == "year"

    @pytest.mark.parametrize("value", ["-1", "abc", "1.5", "", "٣"])
    def test_limit_must_be_non_negative_integer(self, registry, value):
        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {"$limit": value})
        assert exc.value.param == "$limit"

    @pytest.mark.parametrize("key", ["$limit", "$offset"])
    def test_pagination_is_bounded(self, registry, key):
        spec = parse(registry, "Book", {key: str(2 ** 63 - 1)})
        assert max(spec.limit or 0, spec.offset or 0) == 2 ** 63 - 1

        with pytest.raises(BadRequest) as exc:
            parse(registry, "Book", {key: str(2 ** 63)})
        assert exc.value.param == key


class TestModifiers:
    """Projection, ordering, grouping and flags"""

    def test_pagination(self, registry):
        spec = parse(registry, "Book", {"$limit": "10", "$offset": "0"})
        assert (spec.limit, spec.offset) == (10, 0)

    def test_projection_is_custom(self, registry):
        spec = parse(registry, "Book", {"$f": "title,author__name,id__count"})

        assert spec.custom_projection is True
        assert [t.alias for t in spec.projection] == ["title", "author__name", "id__count"]
        assert spec.projection[2].aggregate == Aggregate.COUNT
        assert len(spec.joins) == 1

    def test_no_projection_is_typed(self, registry):
        assert parse(registry, "Book", {}).custom_projection is False

    def test_order_and_group_by(self, registry):
        spec = parse(registry, "Book", {
            "$f": "author_id,id__count",
            "$groupby": "author_id",
            "$order": "-id__count,author_id",
        })

        assert [c.column for c in spec.group_by] == ["author_id"]
        assert spec.order_by[0].alias == "id__count"
        assert spec.order_by[0].descending is True
        assert spec.order_by[1].column.column == "author_id"
        assert spec.order_by[1].descending is False

    def test_flags(self, registry):
        spec = parse(registry, "Book", {"$distinct": "1", "$preload": "true", "$m2m": "id"})

        assert spec.distinct is True
        assert spec.preload is True
        assert spec.m2m == M2MMode.IDS

    def test_m2m_fill(self, registry):
        assert parse(registry, "Book", {"$m2m": "1"}).m2m == M2MMode.FILL
        assert parse(registry, "Book", {"$m2m": "0"}).m2m is None

    def test_invalid_flag(self, registry):
        with pytest.raises(BadRequest):
            parse(registry, "Book", {"$preload": "maybe"})


class TestCoerceValue:
    """Value conversion by field type"""

    def test_bool(self):
        field = FieldSpec("active", "active", bool)
        assert coerce_value(field, "true", "active") is True
        assert coerce_value(field, "0", "active") is False
        with pytest.raises(BadRequest):
            coerce_value(field, "", "active")

    def test_date(self):
        field = FieldSpec("published", "published", date)
        assert coerce_value(field, "2020-01-31", "published") == date(2020, 1, 31)

    def test_str_passes_through(self):
        field = FieldSpec("title", "title", str)
        assert coerce_value(field, "Dune", "title") == "Dune"
