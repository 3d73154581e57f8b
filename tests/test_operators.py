"""Tests for operator, direction and pagination enums."""

from __future__ import annotations

import pytest

from cqrs_ddd_query_params.operators import (
    PAGINATION_FIELDS,
    FilterOperator,
    OrderDirection,
    PaginationType,
)


@pytest.mark.parametrize(
    ("direction", "expected"),
    [
        (OrderDirection.ASC, OrderDirection.DESC),
        (OrderDirection.DESC, OrderDirection.ASC),
        (OrderDirection.ASC_NULLS_FIRST, OrderDirection.DESC_NULLS_LAST),
        (OrderDirection.ASC_NULLS_LAST, OrderDirection.DESC_NULLS_FIRST),
        (OrderDirection.DESC_NULLS_FIRST, OrderDirection.ASC_NULLS_LAST),
        (OrderDirection.DESC_NULLS_LAST, OrderDirection.ASC_NULLS_FIRST),
    ],
)
def test_reverse_flips_direction_and_null_placement(direction, expected):
    assert direction.reverse() is expected
    assert expected.reverse() is direction


def test_plain_directions_put_nulls_on_the_large_side():
    assert OrderDirection.ASC.nulls_first is False
    assert OrderDirection.DESC.nulls_first is True
    assert OrderDirection.ASC_NULLS_FIRST.nulls_first is True
    assert OrderDirection.DESC_NULLS_LAST.nulls_first is False


def test_is_ascending():
    assert OrderDirection.ASC_NULLS_LAST.is_ascending
    assert not OrderDirection.DESC_NULLS_FIRST.is_ascending


def test_pagination_groups():
    assert PaginationType.OFFSET.fields == ("limit", "offset")
    assert PaginationType.PAGE.fields == ("page", "page_size")
    assert PaginationType.FIRST.fields == ("first", "after")
    assert PaginationType.LAST.fields == ("last", "before")
    assert len(PAGINATION_FIELDS) == 8


def test_filter_operators_parse_from_wire_values():
    assert FilterOperator("=~") is FilterOperator.SEARCH
    assert FilterOperator("not_in") is FilterOperator.NOT_IN
    with pytest.raises(ValueError):
        FilterOperator("~~")
