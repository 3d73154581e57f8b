"""
Predicate tree handed to the execution layer.

The composer builds these nodes at request time; adapters walk them and
translate each :class:`Condition` through their operator registry. Text
operators are already lowered to LIKE patterns by the time a predicate is
built, so adapters only deal with the primitive :class:`PredicateOp` set.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .fields import UNKNOWN_TYPE, TypeKind, ValueType


class PredicateOp(str, Enum):
    """Primitive comparison operators understood by every adapter."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    LIKE = "like"
    NOT_LIKE = "not_like"
    ILIKE = "ilike"
    NOT_ILIKE = "not_ilike"
    IS_NULL = "is_null"
    IS_EMPTY = "is_empty"


@dataclass(frozen=True, slots=True)
class FieldRef:
    """
    Where a field's value lives.

    ``source`` is the column/attribute name, ``binding`` the relation that
    must be joined (join fields only), ``path`` the record path used by
    in-memory evaluation and ``alias`` marks projection-only fields.
    """

    name: str
    source: str
    binding: str | None = None
    path: tuple[str, ...] = ()
    value_type: ValueType = UNKNOWN_TYPE
    alias: bool = False

    @property
    def record_path(self) -> tuple[str, ...]:
        return self.path or (self.source,)

    @property
    def kind(self) -> TypeKind:
        return self.value_type.kind

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"field": self.name}
        if self.binding is not None:
            data["binding"] = self.binding
        return data


class Predicate:
    """Base class for predicate nodes with logic operator support."""

    def __and__(self, other: Predicate) -> Predicate:
        return and_(self, other)

    def __or__(self, other: Predicate) -> Predicate:
        return or_(self, other)

    def __invert__(self) -> Predicate:
        return not_(self)

    def bindings(self) -> frozenset[str]:
        """Names of the relations this predicate needs joined."""
        return frozenset()

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Condition(Predicate):
    op: PredicateOp
    field: FieldRef
    value: Any = None

    def bindings(self) -> frozenset[str]:
        if self.field.binding is None:
            return frozenset()
        return frozenset({self.field.binding})

    def to_dict(self) -> dict[str, Any]:
        return {"op": self.op.value, **self.field.to_dict(), "value": self.value}


@dataclass(frozen=True, slots=True)
class And(Predicate):
    children: tuple[Predicate, ...]

    def bindings(self) -> frozenset[str]:
        return frozenset().union(*(child.bindings() for child in self.children))

    def to_dict(self) -> dict[str, Any]:
        return {"op": "and", "conditions": [c.to_dict() for c in self.children]}


@dataclass(frozen=True, slots=True)
class Or(Predicate):
    children: tuple[Predicate, ...]

    def bindings(self) -> frozenset[str]:
        return frozenset().union(*(child.bindings() for child in self.children))

    def to_dict(self) -> dict[str, Any]:
        return {"op": "or", "conditions": [c.to_dict() for c in self.children]}


@dataclass(frozen=True, slots=True)
class Not(Predicate):
    child: Predicate

    def bindings(self) -> frozenset[str]:
        return self.child.bindings()

    def to_dict(self) -> dict[str, Any]:
        return {"op": "not", "conditions": [self.child.to_dict()]}


@dataclass(frozen=True, slots=True)
class Constant(Predicate):
    value: bool

    def to_dict(self) -> dict[str, Any]:
        return {"op": "true" if self.value else "false"}


TRUE = Constant(True)
FALSE = Constant(False)


# ---------------------------------------------------------------------------
# Smart constructors
# ---------------------------------------------------------------------------


def and_(*predicates: Predicate) -> Predicate:
    """AND the predicates, flattening nested ANDs and folding constants."""
    children: list[Predicate] = []
    for predicate in predicates:
        if predicate == TRUE:
            continue
        if predicate == FALSE:
            return FALSE
        if isinstance(predicate, And):
            children.extend(predicate.children)
        else:
            children.append(predicate)
    if not children:
        return TRUE
    if len(children) == 1:
        return children[0]
    return And(tuple(children))


def or_(*predicates: Predicate) -> Predicate:
    """OR the predicates, flattening nested ORs and folding constants."""
    children: list[Predicate] = []
    for predicate in predicates:
        if predicate == FALSE:
            continue
        if predicate == TRUE:
            return TRUE
        if isinstance(predicate, Or):
            children.extend(predicate.children)
        else:
            children.append(predicate)
    if not children:
        return FALSE
    if len(children) == 1:
        return children[0]
    return Or(tuple(children))


def not_(predicate: Predicate) -> Predicate:
    if predicate == TRUE:
        return FALSE
    if predicate == FALSE:
        return TRUE
    if isinstance(predicate, Not):
        return predicate.child
    return Not(predicate)
