"""
Pagination metadata.

Offset and page pagination derive everything from the total count and the
page size. Cursor pagination never counts: it fetches one row more than
requested and reads "is there another page" off the window length.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from .cursor import get_cursors

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from .params import Parameters
    from .registry import FieldRegistry


@dataclass(frozen=True, slots=True)
class Meta:
    """
    Pagination metadata for one request.

    Offset/page fields are ``None`` in cursor mode; cursors are ``None``
    outside it. ``params`` are the parameters the results were fetched with.
    """

    params: Parameters | None = None
    page_size: int | None = None
    has_next_page: bool = False
    has_previous_page: bool = False
    total_count: int | None = None
    total_pages: int | None = None
    current_offset: int | None = None
    current_page: int | None = None
    next_offset: int | None = None
    next_page: int | None = None
    previous_offset: int | None = None
    previous_page: int | None = None
    start_cursor: str | None = None
    end_cursor: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["params"] = self.params.to_dict() if self.params is not None else None
        return data


# ---------------------------------------------------------------------------
# Offset / page arithmetic
# ---------------------------------------------------------------------------


def get_total_pages(total_count: int, page_size: int | None) -> int:
    if total_count == 0:
        return 0
    if page_size is None:
        return 1
    return math.ceil(total_count / page_size)


def get_current_offset(params: Parameters) -> int:
    if params.offset is not None:
        return params.offset
    if params.page is not None and params.page_size is not None:
        return (params.page - 1) * params.page_size
    return 0


def get_current_page(params: Parameters, total_pages: int) -> int:
    """
    The page containing the current offset.

    An offset between page boundaries rounds up, so with ``limit=2`` an
    offset of 3 is on page 3, clamped to the last page.
    """
    if params.page is not None:
        return params.page
    if params.limit is not None and params.offset is not None and params.limit > 0:
        return min(math.ceil(params.offset / params.limit) + 1, total_pages)
    return 1


def get_previous_offset(offset: int, limit: int) -> int:
    return max(0, offset - limit)


def get_next_offset(offset: int, limit: int) -> int:
    return offset + limit


def offset_meta(params: Parameters, total_count: int) -> Meta:
    """Metadata for limit/offset, page/page_size or unpaginated results."""
    page_size = params.page_size or params.limit
    total_pages = get_total_pages(total_count, page_size)
    current_offset = get_current_offset(params)
    current_page = get_current_page(params, total_pages)

    has_previous_page = current_offset > 0
    previous_offset = (
        get_previous_offset(current_offset, page_size)
        if has_previous_page and page_size is not None
        else None
    )
    previous_page = current_page - 1 if current_page - 1 > 0 else None

    has_next_page = page_size is not None and current_offset + page_size < total_count
    next_offset = (
        get_next_offset(current_offset, page_size)
        if has_next_page and page_size is not None
        else None
    )
    next_page = min(total_pages, current_page + 1) if has_next_page else None

    return Meta(
        params=params.without_cursor(),
        page_size=page_size,
        has_next_page=has_next_page,
        has_previous_page=has_previous_page,
        total_count=total_count,
        total_pages=total_pages,
        current_offset=current_offset,
        current_page=current_page,
        next_offset=next_offset,
        next_page=next_page,
        previous_offset=previous_offset,
        previous_page=previous_page,
    )


# ---------------------------------------------------------------------------
# Cursor windows
# ---------------------------------------------------------------------------


def cursor_meta(
    params: Parameters,
    window: Sequence[Any],
    *,
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None,
    registry: FieldRegistry | None = None,
) -> tuple[list[Any], Meta]:
    """
    Trim a fetched window and build its metadata.

    The window holds up to ``first + 1`` (or ``last + 1``) rows; the probe
    row only decides ``has_next_page``/``has_previous_page`` and is dropped.
    Backward windows were scanned in reverse and are flipped back into
    logical order before cursors are taken.
    """
    records = list(window)
    has_next_page = False
    has_previous_page = False
    page_size: int | None = None

    if params.first is not None and params.last is None:
        page_size = params.first
        has_next_page = len(records) > page_size
        has_previous_page = params.after is not None
        records = records[:page_size]
    elif params.last is not None and params.first is None:
        page_size = params.last
        has_previous_page = len(records) > page_size
        has_next_page = params.before is not None
        records = records[:page_size]
        records.reverse()

    start_cursor, end_cursor = get_cursors(
        records,
        list(params.order_by or ()),
        cursor_value_func=cursor_value_func,
        registry=registry,
    )
    meta = Meta(
        params=params.without_cursor(),
        page_size=page_size,
        has_next_page=has_next_page,
        has_previous_page=has_previous_page,
        start_cursor=start_cursor,
        end_cursor=end_cursor,
    )
    return records, meta
