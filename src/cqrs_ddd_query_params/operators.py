from __future__ import annotations

from enum import Enum


class FilterOperator(str, Enum):
    """Operators accepted in a filter clause."""

    # Equality / ordering
    EQ = "=="
    NE = "!="
    LE = "<="
    LT = "<"
    GE = ">="
    GT = ">"

    # Set membership
    IN = "in"
    NOT_IN = "not_in"

    # Array membership
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"

    # Nullity
    EMPTY = "empty"
    NOT_EMPTY = "not_empty"

    # Text search
    SEARCH = "=~"
    LIKE = "like"
    NOT_LIKE = "not_like"
    ILIKE = "ilike"
    NOT_ILIKE = "not_ilike"
    LIKE_AND = "like_and"
    LIKE_OR = "like_or"
    ILIKE_AND = "ilike_and"
    ILIKE_OR = "ilike_or"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"


class OrderDirection(str, Enum):
    """Sort directions, including explicit null placement."""

    ASC = "asc"
    ASC_NULLS_FIRST = "asc_nulls_first"
    ASC_NULLS_LAST = "asc_nulls_last"
    DESC = "desc"
    DESC_NULLS_FIRST = "desc_nulls_first"
    DESC_NULLS_LAST = "desc_nulls_last"

    @property
    def is_ascending(self) -> bool:
        return self in _ASCENDING

    @property
    def nulls_first(self) -> bool:
        """
        Whether nulls sort before non-null values.

        Plain ``asc``/``desc`` follow the PostgreSQL convention: nulls are
        treated as larger than any value (last ascending, first descending).
        """
        return self in (
            OrderDirection.ASC_NULLS_FIRST,
            OrderDirection.DESC,
            OrderDirection.DESC_NULLS_FIRST,
        )

    def reverse(self) -> OrderDirection:
        """
        Return the direction that scans the same ordering backwards.

        Null placement flips along with the primary direction, so
        ``asc_nulls_first`` reverses to ``desc_nulls_last``.
        """
        return _REVERSED[self]


_ASCENDING = frozenset(
    {
        OrderDirection.ASC,
        OrderDirection.ASC_NULLS_FIRST,
        OrderDirection.ASC_NULLS_LAST,
    }
)

_REVERSED = {
    OrderDirection.ASC: OrderDirection.DESC,
    OrderDirection.ASC_NULLS_FIRST: OrderDirection.DESC_NULLS_LAST,
    OrderDirection.ASC_NULLS_LAST: OrderDirection.DESC_NULLS_FIRST,
    OrderDirection.DESC: OrderDirection.ASC,
    OrderDirection.DESC_NULLS_FIRST: OrderDirection.ASC_NULLS_LAST,
    OrderDirection.DESC_NULLS_LAST: OrderDirection.ASC_NULLS_FIRST,
}


class PaginationType(str, Enum):
    """The four mutually exclusive pagination strategies."""

    OFFSET = "offset"
    PAGE = "page"
    FIRST = "first"
    LAST = "last"

    @property
    def fields(self) -> tuple[str, str]:
        """The parameter group belonging to this strategy."""
        return _PAGINATION_FIELDS[self]


_PAGINATION_FIELDS = {
    PaginationType.FIRST: ("first", "after"),
    PaginationType.LAST: ("last", "before"),
    PaginationType.OFFSET: ("limit", "offset"),
    PaginationType.PAGE: ("page", "page_size"),
}

# Order in which groups are checked for exclusivity violations.
PAGINATION_GROUPS: tuple[PaginationType, ...] = (
    PaginationType.FIRST,
    PaginationType.LAST,
    PaginationType.OFFSET,
    PaginationType.PAGE,
)

PAGINATION_FIELDS: frozenset[str] = frozenset(
    name for group in _PAGINATION_FIELDS.values() for name in group
)
