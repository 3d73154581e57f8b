"""
Field descriptors and comparison-value types.

A :class:`~cqrs_ddd_query_params.registry.FieldRegistry` maps every field
identifier to one of the descriptors below. The descriptor decides which
operators are legal, how filter values are cast, and how the composer turns
a clause into a predicate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .operators import FilterOperator
    from .params import Filter
    from .predicates import Predicate


class TypeKind(str, Enum):
    """Broad families of comparison-value types."""

    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    ID = "id"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    UUID = "uuid"
    ARRAY = "array"
    MAP = "map"
    ENUM = "enum"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ValueType:
    """
    The type of a field's comparison value.

    ``item`` is set for arrays, ``choices`` for enums.
    """

    kind: TypeKind
    item: ValueType | None = None
    choices: tuple[Any, ...] | None = None

    @classmethod
    def array(cls, item: ValueType | TypeKind) -> ValueType:
        if isinstance(item, TypeKind):
            item = cls(item)
        return cls(TypeKind.ARRAY, item=item)

    @classmethod
    def enum(cls, choices: Any) -> ValueType:
        """Build an enum type from an ``Enum`` subclass or an iterable of values."""
        if isinstance(choices, type) and issubclass(choices, Enum):
            values = tuple(member.value for member in choices)
        else:
            values = tuple(choices)
        return cls(TypeKind.ENUM, choices=values)

    @classmethod
    def of(cls, value: ValueType | TypeKind | str | None) -> ValueType:
        """Coerce shorthand (``"string"``, ``TypeKind.STRING``) into a ValueType."""
        if value is None:
            return UNKNOWN_TYPE
        if isinstance(value, ValueType):
            return value
        return cls(TypeKind(value))

    def __str__(self) -> str:
        if self.kind is TypeKind.ARRAY and self.item is not None:
            return f"array[{self.item}]"
        return self.kind.value


UNKNOWN_TYPE = ValueType(TypeKind.UNKNOWN)
STRING_TYPE = ValueType(TypeKind.STRING)


# ---------------------------------------------------------------------------
# Field descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NormalField:
    """A field mapping directly to a data-source column or attribute."""

    name: str
    value_type: ValueType = UNKNOWN_TYPE
    column: str | None = None

    @property
    def source(self) -> str:
        return self.column or self.name


@dataclass(frozen=True, slots=True)
class CompoundField:
    """One logical field standing for several physical fields."""

    name: str
    members: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class JoinField:
    """
    A field reached through a named relation.

    ``binding`` names the relation the execution layer must have joined;
    ``field`` is the attribute on the joined side. ``path`` is how the value
    is reached from a result record (defaults to ``(binding, field)``).
    """

    name: str
    binding: str
    field: str
    path: tuple[str, ...] = ()
    value_type: ValueType = UNKNOWN_TYPE

    @property
    def record_path(self) -> tuple[str, ...]:
        return self.path or (self.binding, self.field)


@dataclass(frozen=True, slots=True)
class CustomField:
    """
    A field whose predicate is built by an external handler.

    The handler receives the filter clause and the merged options and
    returns a predicate, or ``None`` to contribute nothing.
    """

    name: str
    handler: Callable[[Filter, Mapping[str, Any]], Predicate | None]
    extra: Mapping[str, Any] = field(default_factory=dict)
    operators: frozenset[FilterOperator] | None = None
    value_type: ValueType = UNKNOWN_TYPE
    bindings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AliasField:
    """A projection-only field (e.g. a computed aggregate); sortable, never filterable."""

    name: str


FieldDescriptor = Union[NormalField, CompoundField, JoinField, CustomField, AliasField]
