"""
Opaque, URL-safe tokens for seek pagination.

A cursor is the mapping ``{order_field: value}`` of a boundary record,
serialized as BSON and wrapped in unpadded URL-safe base64. BSON has no
native tuple, non-string-keyed map, date, time, aware datetime or UUID, so
those are stored as small tagged sub-documents and rebuilt on decode.

Decoding never trusts the payload: after parsing, the value tree is walked
and anything outside the cursor grammar (JavaScript ``Code``, ``ObjectId``,
``Regex``, raw BSON datetimes, unknown tags...) is rejected. Every failure,
whether bad base64, bad BSON, a non-mapping payload or a disallowed value,
surfaces as the same :class:`InvalidCursorError`.
"""

from __future__ import annotations

import base64
import binascii
import datetime
import logging
import uuid
from collections.abc import Mapping
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import bson
from bson import Decimal128, Int64
from bson.errors import BSONError

from .exceptions import InvalidCursorError
from .fields import JoinField
from .utils import get_path, get_value

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .registry import FieldRegistry

logger = logging.getLogger(__name__)

_TAG = "__t"
_VALUE = "v"


class _UnsafeValueError(ValueError):
    """A decoded value falls outside the cursor grammar."""


# ---------------------------------------------------------------------------
# Value packing
# ---------------------------------------------------------------------------


def _tagged(tag: str, value: Any) -> dict[str, Any]:
    return {_TAG: tag, _VALUE: value}


def _pack(value: Any) -> Any:
    """Convert a cursor value into BSON-safe types."""
    if value is None or isinstance(value, (bool, str, bytes, float)):
        return value
    if isinstance(value, int):
        if -(2**63) <= value < 2**63:
            return int(value)
        return _tagged("bigint", str(value))
    if isinstance(value, Decimal):
        return Decimal128(value)
    if isinstance(value, datetime.datetime):
        return _tagged("datetime", value.isoformat())
    if isinstance(value, datetime.date):
        return _tagged("date", value.isoformat())
    if isinstance(value, datetime.time):
        return _tagged("time", value.isoformat())
    if isinstance(value, uuid.UUID):
        return _tagged("uuid", str(value))
    if isinstance(value, list):
        return [_pack(v) for v in value]
    if isinstance(value, tuple):
        return _tagged("tuple", [_pack(v) for v in value])
    if isinstance(value, Mapping):
        return _tagged("map", [[_pack(k), _pack(v)] for k, v in value.items()])
    raise TypeError(f"Cannot encode {type(value).__name__} value in a cursor")


_SCALARS = frozenset({bool, int, float, str, bytes})

_UNTAGGERS: dict[str, Callable[[Any], Any]] = {
    "bigint": int,
    "datetime": datetime.datetime.fromisoformat,
    "date": datetime.date.fromisoformat,
    "time": datetime.time.fromisoformat,
    "uuid": uuid.UUID,
}


def _unpack(value: Any) -> Any:
    """Rebuild a cursor value, rejecting anything outside the cursor grammar."""
    # Exact type checks: bson.Code subclasses str and bson.Binary subclasses bytes.
    if value is None or type(value) in _SCALARS:
        return value
    if type(value) is Int64:
        return int(value)
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, list):
        return [_unpack(v) for v in value]
    if type(value) is dict:
        return _untag(value)
    raise _UnsafeValueError(type(value).__name__)


def _untag(document: dict[str, Any]) -> Any:
    if set(document) != {_TAG, _VALUE}:
        raise _UnsafeValueError("untagged document")
    tag, payload = document[_TAG], document[_VALUE]
    if tag == "tuple" and isinstance(payload, list):
        return tuple(_unpack(v) for v in payload)
    if tag == "map" and isinstance(payload, list):
        result: dict[Any, Any] = {}
        for pair in payload:
            if not isinstance(pair, list) or len(pair) != 2:
                raise _UnsafeValueError("malformed map entry")
            result[_unpack(pair[0])] = _unpack(pair[1])
        return result
    untag = _UNTAGGERS.get(tag)
    if untag is None or not isinstance(payload, str):
        raise _UnsafeValueError(f"unknown tag {tag!r}")
    return untag(payload)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def encode_cursor(values: Mapping[str, Any]) -> str:
    """
    Encode an order-field mapping into an opaque cursor.

    Raises:
        TypeError: If a key is not a string or a value cannot be encoded.
    """
    document: dict[str, Any] = {}
    for key, value in values.items():
        if not isinstance(key, str):
            raise TypeError(f"Cursor keys must be strings, got {key!r}")
        document[key] = _pack(value)
    raw = bson.encode(document)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_cursor(cursor: str) -> dict[str, Any]:
    """
    Decode a cursor produced by :func:`encode_cursor`.

    Raises:
        InvalidCursorError: For any malformed or unsafe cursor.
    """
    if not isinstance(cursor, str):
        raise InvalidCursorError(cursor)
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        document = bson.decode(raw)
        return {key: _unpack(value) for key, value in document.items()}
    except (binascii.Error, BSONError, ValueError, TypeError) as exc:
        logger.debug("Rejected cursor %r: %s", cursor, exc)
        raise InvalidCursorError(cursor) from exc


def default_cursor_values(
    item: Any,
    order_by: Sequence[str],
    registry: FieldRegistry | None = None,
) -> dict[str, Any]:
    """
    Project *item* onto the order fields.

    Join fields declared in *registry* are followed along their record path;
    everything else is read as a mapping key or attribute. A ``(node, edge)``
    pair is projected through its node.
    """
    if type(item) is tuple and len(item) == 2:
        item = item[0]
    values: dict[str, Any] = {}
    for name in order_by:
        descriptor = registry.resolve(name) if registry is not None else None
        if isinstance(descriptor, JoinField):
            values[name] = get_path(item, descriptor.record_path)
        else:
            values[name] = get_value(item, name)
    return values


def get_cursor_from_item(
    item: Any,
    order_by: Sequence[str],
    *,
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None,
    registry: FieldRegistry | None = None,
) -> str:
    """Encode the cursor pointing at *item*."""
    if cursor_value_func is not None:
        values = cursor_value_func(item, order_by)
    else:
        values = default_cursor_values(item, order_by, registry)
    return encode_cursor(values)


def get_cursors(
    items: Sequence[Any],
    order_by: Sequence[str],
    *,
    cursor_value_func: Callable[[Any, Sequence[str]], Mapping[str, Any]] | None = None,
    registry: FieldRegistry | None = None,
) -> tuple[str | None, str | None]:
    """Start and end cursors of a result window; ``(None, None)`` when empty."""
    if not items:
        return None, None
    start = get_cursor_from_item(
        items[0], order_by, cursor_value_func=cursor_value_func, registry=registry
    )
    end = get_cursor_from_item(
        items[-1], order_by, cursor_value_func=cursor_value_func, registry=registry
    )
    return start, end
