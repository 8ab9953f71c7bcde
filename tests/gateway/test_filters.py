from __future__ import annotations

import pytest

from constants import FILTER_OPERATORS
from services.gateway.errors import (
    InvalidFilter,
    InvalidFilterValue,
    UnsupportedFilterOperator,
)
from services.gateway.filters import (
    FILTER_APPLIERS,
    compile_filters,
    get_available_operators,
    parse_filters,
)
from services.gateway.models import FilterCondition

from conftest import FakeQuery


class TestParseFilters:
    """Validation happens before any query is built."""

    def test_none_means_no_filters(self) -> None:
        assert parse_filters(None) == []

    def test_preserves_request_order(self) -> None:
        raw = [
            {"column": "age", "operator": "gte", "value": 18},
            {"column": "status", "operator": "eq", "value": "active"},
        ]
        conditions = parse_filters(raw)
        assert [c.column for c in conditions] == ["age", "status"]
        assert conditions[0] == FilterCondition("age", "gte", 18)

    def test_unknown_operator_is_rejected(self) -> None:
        with pytest.raises(UnsupportedFilterOperator) as exc_info:
            parse_filters([{"column": "age", "operator": "between", "value": [1, 2]}])
        assert exc_info.value.operator == "between"
        assert exc_info.value.index == 0

    def test_operator_outside_allowed_set_is_rejected(self) -> None:
        with pytest.raises(UnsupportedFilterOperator):
            parse_filters([{"column": "a", "operator": "like", "value": "x%"}],
                          allowed=frozenset(["eq"]))

    def test_non_string_operator_is_rejected(self) -> None:
        with pytest.raises(UnsupportedFilterOperator):
            parse_filters([{"column": "a", "operator": 3, "value": 1}])

    @pytest.mark.parametrize("column", ["", "   ", None, 5])
    def test_column_must_be_non_empty_string(self, column) -> None:
        with pytest.raises(InvalidFilter):
            parse_filters([{"column": column, "operator": "eq", "value": 1}])

    def test_value_key_is_required(self) -> None:
        with pytest.raises(InvalidFilter):
            parse_filters([{"column": "a", "operator": "eq"}])

    def test_filters_must_be_a_list(self) -> None:
        with pytest.raises(InvalidFilter):
            parse_filters({"column": "a", "operator": "eq", "value": 1})

    def test_condition_must_be_an_object(self) -> None:
        with pytest.raises(InvalidFilter):
            parse_filters(["age >= 18"])

    @pytest.mark.parametrize("operator,value", [
        ("in", 5),
        ("in", "a,b"),
        ("in", [[1], [2]]),
        ("eq", [1, 2]),
        ("gt", {"a": 1}),
        ("like", 5),
        ("is", "maybe"),
        ("overlaps", "a"),
        ("contains", 5),
        ("eq", None),
        ("neq", None),
        ("lt", None),
    ])
    def test_value_shape_must_match_operator(self, operator, value) -> None:
        with pytest.raises(InvalidFilterValue) as exc_info:
            parse_filters([{"column": "c", "operator": operator, "value": value}])
        assert exc_info.value.operator == operator

    @pytest.mark.parametrize("operator,value", [
        ("in", [1, 2, 3]),
        ("is", None),
        ("is", True),
        ("is", "null"),
        ("ilike", "%smith%"),
        ("contains", {"tags": ["a"]}),
        ("containedBy", ["a", "b"]),
        ("overlaps", ["a"]),
    ])
    def test_accepts_matching_shapes(self, operator, value) -> None:
        assert len(parse_filters([{"column": "c", "operator": operator, "value": value}])) == 1

    def test_null_comparison_points_to_is(self) -> None:
        with pytest.raises(InvalidFilterValue) as exc_info:
            parse_filters([{"column": "deleted_at", "operator": "eq", "value": None}])
        assert "'is'" in exc_info.value.expected


class TestCompileFilters:

    def test_every_operator_has_an_applier(self) -> None:
        assert frozenset(FILTER_APPLIERS) == FILTER_OPERATORS
        assert set(get_available_operators()) == FILTER_OPERATORS

    def test_applies_in_order_as_conjunction(self) -> None:
        query = FakeQuery("users")
        conditions = [
            FilterCondition("age", "gte", 18),
            FilterCondition("name", "ilike", "a%"),
            FilterCondition("id", "in", (1, 2)),
        ]

        result = compile_filters(query, conditions)

        assert result is query
        assert query.calls == [
            ("gte", ("age", 18), {}),
            ("ilike", ("name", "a%"), {}),
            ("in_", ("id", [1, 2]), {}),
        ]

    @pytest.mark.parametrize("operator,method", [
        ("is", "is_"),
        ("in", "in_"),
        ("containedBy", "contained_by"),
        ("overlaps", "overlaps"),
        ("neq", "neq"),
    ])
    def test_operator_maps_to_builder_method(self, operator, method) -> None:
        value = {"is": None, "neq": 1}.get(operator, [1])
        query = compile_filters(FakeQuery("t"), [FilterCondition("c", operator, value)])
        assert query.methods() == [method]

    def test_no_filters_leaves_builder_untouched(self) -> None:
        query = FakeQuery("t")
        assert compile_filters(query, []) is query
        assert query.calls == []

    def test_unknown_operator_never_reaches_builder(self) -> None:
        query = FakeQuery("t")
        with pytest.raises(UnsupportedFilterOperator):
            compile_filters(query, [FilterCondition("c", "regex", ".*")])
        assert query.calls == []
