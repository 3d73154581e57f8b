"""Tests for canonical parameters and order manipulation."""

from __future__ import annotations

import pytest

from cqrs_ddd_query_params.exceptions import InvalidDirectionsError
from cqrs_ddd_query_params.operators import FilterOperator, OrderDirection, PaginationType
from cqrs_ddd_query_params.params import DefaultOrder, Filter, Parameters, push_order


class TestParameters:
    def test_order_pairs_pad_missing_directions_with_asc(self) -> None:
        params = Parameters(
            order_by=("species", "name", "age"),
            order_directions=(OrderDirection.DESC,),
        )
        assert params.order_pairs() == [
            (OrderDirection.DESC, "species"),
            (OrderDirection.ASC, "name"),
            (OrderDirection.ASC, "age"),
        ]

    def test_order_pairs_ignore_surplus_directions(self) -> None:
        params = Parameters(
            order_by=("name",),
            order_directions=(OrderDirection.DESC, OrderDirection.ASC),
        )
        assert params.order_pairs() == [(OrderDirection.DESC, "name")]

    def test_pagination_type(self) -> None:
        assert Parameters().pagination_type is None
        assert Parameters(limit=10).pagination_type is PaginationType.OFFSET
        assert Parameters(page=2).pagination_type is PaginationType.PAGE
        assert Parameters(after="x").pagination_type is PaginationType.FIRST
        assert Parameters(last=3).pagination_type is PaginationType.LAST

    def test_is_backward(self) -> None:
        assert Parameters(last=2, before="x").is_backward
        assert not Parameters(first=2).is_backward
        assert not Parameters(last=2, first=2).is_backward

    def test_decoded_cursor_is_not_compared(self) -> None:
        a = Parameters(first=2, after="x", decoded_cursor={"name": "Patty"})
        b = Parameters(first=2, after="x")
        assert a == b
        assert a.without_cursor().decoded_cursor is None

    def test_to_dict_omits_unset_values(self) -> None:
        params = Parameters(
            filters=(Filter("age", FilterOperator.GT, 3),),
            order_by=("name",),
            limit=10,
            offset=0,
        )
        assert params.to_dict() == {
            "filters": [{"field": "age", "op": ">", "value": 3}],
            "order_by": ["name"],
            "limit": 10,
            "offset": 0,
        }


class TestPushOrder:
    def test_prepends_new_field_ascending(self) -> None:
        params = Parameters(order_by=("age",), order_directions=(OrderDirection.DESC,))
        pushed = push_order(params, "name")
        assert pushed.order_by == ("name", "age")
        assert pushed.order_directions == (OrderDirection.ASC, OrderDirection.DESC)

    def test_toggles_leading_field(self) -> None:
        params = push_order(Parameters(), "name")
        assert push_order(params, "name").order_directions == (OrderDirection.DESC,)
        assert push_order(push_order(params, "name"), "name").order_directions == (
            OrderDirection.ASC,
        )

    def test_moves_existing_field_to_front(self) -> None:
        params = Parameters(order_by=("age", "name"))
        assert push_order(params, "name").order_by == ("name", "age")

    def test_resets_position(self) -> None:
        params = Parameters(order_by=("age",), first=2, after="cursor", limit=None)
        pushed = push_order(params, "name")
        assert pushed.after is None
        assert pushed.first == 2
        assert push_order(Parameters(limit=10, offset=30), "name").offset == 0
        assert push_order(Parameters(page=4, page_size=10), "name").page == 1

    def test_custom_directions(self) -> None:
        directions = ("desc_nulls_last", "asc_nulls_first")
        params = push_order(Parameters(), "age", directions=directions)
        assert params.order_directions == (OrderDirection.DESC_NULLS_LAST,)
        toggled = push_order(params, "age", directions=directions)
        assert toggled.order_directions == (OrderDirection.ASC_NULLS_FIRST,)

    @pytest.mark.parametrize(
        "directions",
        [("asc",), ("asc", "asc"), ("up", "down"), "asc"],
    )
    def test_invalid_custom_directions(self, directions) -> None:
        with pytest.raises(InvalidDirectionsError):
            push_order(Parameters(), "name", directions=directions)


def test_default_order_of_casts_directions():
    order = DefaultOrder.of(["name", "age"], ["desc", "asc"])
    assert order.order_by == ("name", "age")
    assert order.order_directions == (OrderDirection.DESC, OrderDirection.ASC)
