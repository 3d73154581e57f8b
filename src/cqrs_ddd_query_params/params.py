"""Canonical, validated query parameters."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .exceptions import InvalidDirectionsError
from .operators import FilterOperator, OrderDirection, PaginationType


@dataclass(frozen=True, slots=True)
class Filter:
    """A single filter clause: ``field op value``."""

    field: str | None
    op: FilterOperator = FilterOperator.EQ
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "op": self.op.value, "value": self.value}


@dataclass(frozen=True, slots=True)
class Parameters:
    """
    Validated request parameters.

    At most one pagination group (``limit``/``offset``, ``page``/``page_size``,
    ``first``/``after``, ``last``/``before``) carries values.

    ``decoded_cursor`` caches the cursor decoded during validation so the
    composer does not decode it twice. It does not take part in equality and
    is stripped before parameters are exposed through ``Meta``.
    """

    filters: tuple[Filter, ...] = ()
    order_by: tuple[str, ...] | None = None
    order_directions: tuple[OrderDirection, ...] | None = None
    limit: int | None = None
    offset: int | None = None
    page: int | None = None
    page_size: int | None = None
    first: int | None = None
    after: str | None = None
    last: int | None = None
    before: str | None = None
    decoded_cursor: dict[str, Any] | None = field(
        default=None, compare=False, repr=False
    )

    @property
    def pagination_type(self) -> PaginationType | None:
        """The active pagination strategy, checked in first/last/page/offset order."""
        if self.first is not None or self.after is not None:
            return PaginationType.FIRST
        if self.last is not None or self.before is not None:
            return PaginationType.LAST
        if self.page is not None or self.page_size is not None:
            return PaginationType.PAGE
        if self.limit is not None or self.offset is not None:
            return PaginationType.OFFSET
        return None

    @property
    def is_backward(self) -> bool:
        """True for ``last``/``before`` paging with no forward or offset group set."""
        return (
            (self.last is not None or self.before is not None)
            and self.first is None
            and self.after is None
            and self.offset is None
        )

    def order_pairs(self) -> list[tuple[OrderDirection, str]]:
        """
        Zip ``order_directions`` with ``order_by``.

        Missing directions are padded with ``asc``; surplus directions are
        ignored.
        """
        if not self.order_by:
            return []
        directions = list(self.order_directions or ())
        missing = len(self.order_by) - len(directions)
        if missing > 0:
            directions.extend([OrderDirection.ASC] * missing)
        return list(zip(directions, self.order_by))

    def without_cursor(self) -> Parameters:
        return replace(self, decoded_cursor=None)

    def to_dict(self) -> dict[str, Any]:
        """Raw-parameter form; feeding it back to ``validate`` yields equal parameters."""
        data: dict[str, Any] = {
            "filters": [f.to_dict() for f in self.filters],
            "order_by": list(self.order_by) if self.order_by is not None else None,
            "order_directions": (
                [d.value for d in self.order_directions]
                if self.order_directions is not None
                else None
            ),
        }
        for name in (
            "limit",
            "offset",
            "page",
            "page_size",
            "first",
            "after",
            "last",
            "before",
        ):
            data[name] = getattr(self, name)
        return {key: value for key, value in data.items() if value is not None}


# ---------------------------------------------------------------------------
# Order manipulation
# ---------------------------------------------------------------------------


def _check_directions(
    directions: Any,
) -> tuple[OrderDirection, OrderDirection]:
    if not isinstance(directions, (tuple, list)) or len(directions) != 2:
        raise InvalidDirectionsError(directions)
    try:
        asc, desc = (OrderDirection(d) for d in directions)
    except ValueError as exc:
        raise InvalidDirectionsError(directions) from exc
    if asc == desc:
        raise InvalidDirectionsError(directions)
    return asc, desc


def push_order(
    params: Parameters,
    field_name: str,
    *,
    directions: tuple[Any, Any] | None = None,
) -> Parameters:
    """
    Put *field_name* at the front of the ordering, or toggle it if it is there.

    The field enters with the ascending direction of *directions* (default
    ``("asc", "desc")``). If it already leads the ordering, its direction
    flips between the two. Cursors are dropped and offset/page reset, since
    they refer to a position in the previous ordering.

    Raises:
        InvalidDirectionsError: If *directions* is not a pair of two
            distinct order directions.
    """
    asc, desc = (
        _check_directions(directions)
        if directions is not None
        else (OrderDirection.ASC, OrderDirection.DESC)
    )
    pairs = params.order_pairs()

    if pairs and pairs[0][1] == field_name:
        current = pairs[0][0]
        pairs[0] = (desc if current == asc else asc, field_name)
    else:
        pairs = [(asc, field_name)] + [p for p in pairs if p[1] != field_name]

    return replace(
        params,
        order_by=tuple(name for _, name in pairs),
        order_directions=tuple(direction for direction, _ in pairs),
        after=None,
        before=None,
        decoded_cursor=None,
        offset=0 if params.offset is not None else None,
        page=1 if params.page is not None else None,
    )


@dataclass(frozen=True, slots=True)
class DefaultOrder:
    """Ordering applied when the request does not specify one."""

    order_by: tuple[str, ...]
    order_directions: tuple[OrderDirection, ...] | None = None

    @classmethod
    def of(
        cls,
        order_by: list[str] | tuple[str, ...],
        order_directions: list[Any] | tuple[Any, ...] | None = None,
    ) -> DefaultOrder:
        directions = (
            tuple(OrderDirection(d) for d in order_directions)
            if order_directions is not None
            else None
        )
        return cls(tuple(order_by), directions)
