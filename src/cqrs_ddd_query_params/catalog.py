"""
Operator catalog.

For each :class:`FilterOperator` the catalog knows the shape of the value it
expects (scalar, list, boolean, search terms) and for each field descriptor
which operators are legal. Filter values are cast with pydantic's lax mode,
so ``"5"`` becomes ``5`` for an integer field while ``"8y"`` is rejected.

The catalog is consulted twice: by the validator to reject illegal
field/operator pairs, and by the composer to pick a predicate branch.
"""

from __future__ import annotations

import datetime
import decimal
import uuid
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Literal, Optional, Union

from pydantic import TypeAdapter

from .fields import (
    STRING_TYPE,
    UNKNOWN_TYPE,
    AliasField,
    CompoundField,
    CustomField,
    JoinField,
    NormalField,
    TypeKind,
    ValueType,
)
from .operators import FilterOperator

if TYPE_CHECKING:
    from .fields import FieldDescriptor

Op = FilterOperator


class ValueShape(str, Enum):
    """What a filter value must look like for a given operator."""

    SCALAR = "scalar"
    LIST = "list"
    ELEMENT = "element"
    BOOLEAN = "boolean"
    TERMS = "terms"


# ---------------------------------------------------------------------------
# Operator families
# ---------------------------------------------------------------------------

EQUALITY = frozenset({Op.EQ, Op.NE})
ORDERING = frozenset({Op.LE, Op.LT, Op.GE, Op.GT})
MEMBERSHIP = frozenset({Op.IN, Op.NOT_IN})
ARRAY_MEMBERSHIP = frozenset({Op.CONTAINS, Op.NOT_CONTAINS})
NULLITY = frozenset({Op.EMPTY, Op.NOT_EMPTY})
MULTI_TERM = frozenset({Op.LIKE_AND, Op.LIKE_OR, Op.ILIKE_AND, Op.ILIKE_OR})
TEXT_SEARCH = frozenset(
    {
        Op.SEARCH,
        Op.LIKE,
        Op.NOT_LIKE,
        Op.ILIKE,
        Op.NOT_ILIKE,
        Op.STARTS_WITH,
        Op.ENDS_WITH,
    }
) | MULTI_TERM

ALL_OPERATORS = frozenset(FilterOperator)

COMPARABLE_OPERATORS = EQUALITY | NULLITY | ORDERING | MEMBERSHIP
TEXT_OPERATORS = COMPARABLE_OPERATORS | TEXT_SEARCH
ARRAY_OPERATORS = EQUALITY | NULLITY | ORDERING | MEMBERSHIP | ARRAY_MEMBERSHIP
SIMPLE_OPERATORS = EQUALITY | NULLITY

# Operators the composer can build predicates for on compound fields.
COMPOUND_OPERATORS = TEXT_SEARCH | NULLITY

_OPERATORS_BY_KIND: dict[TypeKind, frozenset[FilterOperator]] = {
    TypeKind.INTEGER: COMPARABLE_OPERATORS,
    TypeKind.FLOAT: COMPARABLE_OPERATORS,
    TypeKind.DECIMAL: COMPARABLE_OPERATORS,
    TypeKind.ID: COMPARABLE_OPERATORS,
    TypeKind.DATE: COMPARABLE_OPERATORS,
    TypeKind.TIME: COMPARABLE_OPERATORS,
    TypeKind.DATETIME: COMPARABLE_OPERATORS,
    TypeKind.UUID: COMPARABLE_OPERATORS,
    TypeKind.ENUM: COMPARABLE_OPERATORS,
    TypeKind.STRING: TEXT_OPERATORS,
    TypeKind.BOOLEAN: SIMPLE_OPERATORS,
    TypeKind.MAP: SIMPLE_OPERATORS,
    TypeKind.ARRAY: ARRAY_OPERATORS,
    TypeKind.UNKNOWN: ALL_OPERATORS,
}

_SHAPES: dict[FilterOperator, ValueShape] = {
    **dict.fromkeys(MEMBERSHIP, ValueShape.LIST),
    **dict.fromkeys(ARRAY_MEMBERSHIP, ValueShape.ELEMENT),
    **dict.fromkeys(NULLITY, ValueShape.BOOLEAN),
    **dict.fromkeys(MULTI_TERM, ValueShape.TERMS),
}


def value_shape(op: FilterOperator) -> ValueShape:
    return _SHAPES.get(op, ValueShape.SCALAR)


def operators_for_type(value_type: ValueType) -> frozenset[FilterOperator]:
    """Operators legal for a field of *value_type*."""
    return _OPERATORS_BY_KIND[value_type.kind]


def allowed_operators(descriptor: FieldDescriptor) -> frozenset[FilterOperator]:
    """
    Operators the validator accepts for *descriptor*.

    Compound fields accept every operator here; the composer only builds
    predicates for :data:`COMPOUND_OPERATORS` and ignores the rest with a
    warning. Alias fields accept nothing.
    """
    if isinstance(descriptor, AliasField):
        return frozenset()
    if isinstance(descriptor, CompoundField):
        return ALL_OPERATORS
    if isinstance(descriptor, CustomField) and descriptor.operators is not None:
        return descriptor.operators
    return operators_for_type(field_value_type(descriptor))


def field_value_type(descriptor: FieldDescriptor) -> ValueType:
    """The type filter values are cast to for *descriptor*."""
    if isinstance(descriptor, CompoundField):
        return STRING_TYPE
    if isinstance(descriptor, (NormalField, JoinField, CustomField)):
        return descriptor.value_type
    return UNKNOWN_TYPE


# ---------------------------------------------------------------------------
# Casting
# ---------------------------------------------------------------------------

_PYTHON_TYPES: dict[TypeKind, Any] = {
    TypeKind.INTEGER: int,
    TypeKind.ID: int,
    TypeKind.FLOAT: float,
    TypeKind.DECIMAL: decimal.Decimal,
    TypeKind.STRING: str,
    TypeKind.BOOLEAN: bool,
    TypeKind.DATE: datetime.date,
    TypeKind.TIME: datetime.time,
    TypeKind.DATETIME: datetime.datetime,
    TypeKind.UUID: uuid.UUID,
    TypeKind.MAP: dict[str, Any],
    TypeKind.UNKNOWN: Any,
}


def python_type(value_type: ValueType) -> Any:
    """Translate a :class:`ValueType` into an annotation pydantic can validate."""
    if value_type.kind is TypeKind.ARRAY:
        return list[python_type(value_type.item or UNKNOWN_TYPE)]  # type: ignore[misc]
    if value_type.kind is TypeKind.ENUM:
        if not value_type.choices:
            return Any
        return Literal[value_type.choices]  # type: ignore[valid-type]
    return _PYTHON_TYPES[value_type.kind]


@lru_cache(maxsize=256)
def _adapter(value_type: ValueType, shape: ValueShape) -> TypeAdapter[Any]:
    if shape is ValueShape.BOOLEAN:
        return TypeAdapter(bool)
    if shape is ValueShape.TERMS:
        return TypeAdapter(Union[str, list[str]])
    if shape is ValueShape.ELEMENT:
        item = value_type.item if value_type.kind is TypeKind.ARRAY else None
        return TypeAdapter(python_type(item or UNKNOWN_TYPE))
    annotation = python_type(value_type)
    if shape is ValueShape.LIST:
        # Null entries stay; "not_in" uses them to exclude nulls too.
        return TypeAdapter(list[Optional[annotation]])  # type: ignore[valid-type]
    return TypeAdapter(annotation)


def cast_value(descriptor: FieldDescriptor, op: FilterOperator, value: Any) -> Any:
    """
    Cast *value* to the shape and type *op* expects on *descriptor*.

    ``None`` passes through untouched; the composer treats such clauses as
    no-ops. Nullity operators default a missing value to ``True``.

    Raises:
        pydantic.ValidationError: If the value cannot be cast.
    """
    shape = value_shape(op)
    if value is None:
        return True if shape is ValueShape.BOOLEAN else None
    return _adapter(field_value_type(descriptor), shape).validate_python(value)
