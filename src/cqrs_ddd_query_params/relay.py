"""
Relay connection helpers.

Turn ``(records, meta)`` pairs returned by ``run`` into the Relay
connection shape (``edges`` + ``page_info``) as plain dictionaries, ready
for any GraphQL library to serialize.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .cursor import get_cursor_from_item

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from .metadata import Meta
    from .registry import FieldRegistry


def page_info_from_meta(meta: Meta) -> dict[str, Any]:
    return {
        "has_previous_page": bool(meta.has_previous_page),
        "has_next_page": bool(meta.has_next_page),
        "start_cursor": meta.start_cursor,
        "end_cursor": meta.end_cursor,
    }


def edges_from_result(
    result: tuple[Sequence[Any], Meta],
    *,
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None,
    registry: FieldRegistry | None = None,
) -> list[dict[str, Any]]:
    """
    Build Relay edges from query results.

    Each item becomes ``{"cursor": ..., "node": item}``. A ``(node, edge_info)``
    2-tuple becomes ``{**edge_info, "cursor": ..., "node": node}``; the
    whole tuple is passed to *cursor_value_func* so cursors can use edge
    fields too.
    """
    items, meta = result
    order_by = list(meta.params.order_by or ()) if meta.params is not None else []

    edges: list[dict[str, Any]] = []
    for item in items:
        cursor = get_cursor_from_item(
            item, order_by, cursor_value_func=cursor_value_func, registry=registry
        )
        if type(item) is tuple and len(item) == 2:
            node, edge_info = item
            edges.append({**dict(edge_info), "cursor": cursor, "node": node})
        else:
            edges.append({"cursor": cursor, "node": item})
    return edges


def connection_from_result(
    result: tuple[Sequence[Any], Meta],
    *,
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None,
    registry: FieldRegistry | None = None,
) -> dict[str, Any]:
    """
    Relay connection for a ``run`` result.

    Usage::

        records, meta = backend.run(query, params, registry=pets)
        connection_from_result((records, meta))
        # {"edges": [{"cursor": "...", "node": ...}], "page_info": {...}}
    """
    return {
        "edges": edges_from_result(
            result, cursor_value_func=cursor_value_func, registry=registry
        ),
        "page_info": page_info_from_meta(result[1]),
    }
