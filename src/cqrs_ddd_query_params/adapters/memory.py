"""
In-memory execution layer.

Useful for tests, fixtures and small static collections. A
:class:`MemoryQuery` accumulates operations lazily; ``fetch`` filters,
sorts (with PostgreSQL null placement) and slices the records.

Conditions are evaluated through a :class:`MemoryOperatorRegistry`: each
:class:`PredicateOp` is an isolated :class:`MemoryOperator` strategy, and new
ones are added by subclassing and registering.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from ..predicates import And, Condition, Constant, Not, Or, PredicateOp
from ..utils import LIKE_ESCAPE, get_path
from .base import QueryAdapter

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..composer import (
        FilterOperation,
        OrderOperation,
        OrderTerm,
        PageBoundOperation,
    )
    from ..predicates import Predicate


# ---------------------------------------------------------------------------
# Operator strategies
# ---------------------------------------------------------------------------


class MemoryOperator(ABC):
    """
    Strategy interface for in-memory operator evaluation.

    Each operator is an isolated class with a single ``evaluate`` method.
    """

    @property
    @abstractmethod
    def name(self) -> PredicateOp:
        """The operator this strategy handles."""
        ...

    @abstractmethod
    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        """
        Evaluate the operator against concrete values.

        Args:
            field_value: The value resolved from the record.
            condition_value: The value carried by the condition.
        """
        ...


class MemoryOperatorRegistry:
    """Registry of :class:`MemoryOperator` instances keyed by :class:`PredicateOp`."""

    def __init__(self) -> None:
        self._operators: dict[PredicateOp, MemoryOperator] = {}

    def register(self, operator: MemoryOperator) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: MemoryOperator) -> None:
        for op in operators:
            self.register(op)

    def get(self, name: PredicateOp) -> MemoryOperator | None:
        return self._operators.get(name)

    def has(self, name: PredicateOp) -> bool:
        return name in self._operators

    def evaluate(self, name: PredicateOp, field_value: Any, condition_value: Any) -> bool:
        """
        Look up the operator and evaluate.

        Raises:
            ValueError: If the operator is not registered.
        """
        op = self.get(name)
        if op is None:
            raise ValueError(f"Unsupported operator for in-memory evaluation: {name}")
        return op.evaluate(field_value, condition_value)


class _Comparison(MemoryOperator):
    """Ordering comparisons; ``None`` never compares."""

    op: PredicateOp

    @property
    def name(self) -> PredicateOp:
        return self.op

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return bool(self.compare(field_value, condition_value))

    @staticmethod
    def compare(left: Any, right: Any) -> bool:
        raise NotImplementedError


class EqualOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.EQ

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value == condition_value)


class NotEqualOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.NE

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return bool(field_value != condition_value)


class LessThanOperator(_Comparison):
    op = PredicateOp.LT

    @staticmethod
    def compare(left: Any, right: Any) -> bool:
        return bool(left < right)


class LessEqualOperator(_Comparison):
    op = PredicateOp.LE

    @staticmethod
    def compare(left: Any, right: Any) -> bool:
        return bool(left <= right)


class GreaterThanOperator(_Comparison):
    op = PredicateOp.GT

    @staticmethod
    def compare(left: Any, right: Any) -> bool:
        return bool(left > right)


class GreaterEqualOperator(_Comparison):
    op = PredicateOp.GE

    @staticmethod
    def compare(left: Any, right: Any) -> bool:
        return bool(left >= right)


class InOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value in condition_value


class NotInOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.NOT_IN

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        return field_value not in condition_value


class ContainsOperator(MemoryOperator):
    """Array membership."""

    @property
    def name(self) -> PredicateOp:
        return PredicateOp.CONTAINS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return condition_value in field_value


class NotContainsOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.NOT_CONTAINS

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        return condition_value not in field_value


def like_to_regex(pattern: str, *, case_insensitive: bool = False) -> re.Pattern[str]:
    """Convert a LIKE pattern (``%``, ``_``, backslash escapes) to a compiled regex."""
    parts: list[str] = []
    chars = iter(pattern)
    for char in chars:
        if char == LIKE_ESCAPE:
            parts.append(re.escape(next(chars, LIKE_ESCAPE)))
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    flags = re.DOTALL | (re.IGNORECASE if case_insensitive else 0)
    return re.compile("".join(parts), flags)


class _Pattern(MemoryOperator):
    op: PredicateOp
    case_insensitive = False
    negated = False

    @property
    def name(self) -> PredicateOp:
        return self.op

    def evaluate(self, field_value: Any, condition_value: Any) -> bool:
        if field_value is None:
            return False
        regex = like_to_regex(str(condition_value), case_insensitive=self.case_insensitive)
        matched = regex.fullmatch(str(field_value)) is not None
        return matched != self.negated


class LikeOperator(_Pattern):
    op = PredicateOp.LIKE


class NotLikeOperator(_Pattern):
    op = PredicateOp.NOT_LIKE
    negated = True


class ILikeOperator(_Pattern):
    op = PredicateOp.ILIKE
    case_insensitive = True


class NotILikeOperator(_Pattern):
    op = PredicateOp.NOT_ILIKE
    case_insensitive = True
    negated = True


class IsNullOperator(MemoryOperator):
    @property
    def name(self) -> PredicateOp:
        return PredicateOp.IS_NULL

    def evaluate(self, field_value: Any, _condition_value: Any) -> bool:
        return field_value is None


class IsEmptyOperator(MemoryOperator):
    """Null, or an empty list/map."""

    @property
    def name(self) -> PredicateOp:
        return PredicateOp.IS_EMPTY

    def evaluate(self, field_value: Any, _condition_value: Any) -> bool:
        if field_value is None:
            return True
        return isinstance(field_value, (list, tuple, dict)) and len(field_value) == 0


def build_default_registry() -> MemoryOperatorRegistry:
    """Create a registry with every built-in operator."""
    registry = MemoryOperatorRegistry()
    registry.register_all(
        EqualOperator(),
        NotEqualOperator(),
        LessThanOperator(),
        LessEqualOperator(),
        GreaterThanOperator(),
        GreaterEqualOperator(),
        InOperator(),
        NotInOperator(),
        ContainsOperator(),
        NotContainsOperator(),
        LikeOperator(),
        NotLikeOperator(),
        ILikeOperator(),
        NotILikeOperator(),
        IsNullOperator(),
        IsEmptyOperator(),
    )
    return registry


# ---------------------------------------------------------------------------
# Queryable
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryQuery:
    """An immutable, lazily evaluated query over a record collection."""

    records: tuple[Any, ...]
    predicates: tuple[Predicate, ...] = ()
    order: tuple[OrderTerm, ...] = ()
    limit: int | None = None
    offset: int | None = None

    @classmethod
    def of(cls, records: Iterable[Any]) -> MemoryQuery:
        return cls(tuple(records))


def _sort_key(value: Any, nulls_low: bool) -> tuple[int, Any]:
    if value is None:
        return (-1 if nulls_low else 1, None)
    return (0, value)


class MemoryAdapter(QueryAdapter):
    """
    Apply operations to :class:`MemoryQuery` objects.

    Plain iterables are accepted as queryables and wrapped on first use.
    """

    def __init__(self, operators: MemoryOperatorRegistry | None = None) -> None:
        self.operators = operators or build_default_registry()

    @staticmethod
    def _query(queryable: Any) -> MemoryQuery:
        if isinstance(queryable, MemoryQuery):
            return queryable
        return MemoryQuery.of(queryable)

    def apply_filter(self, queryable: Any, operation: FilterOperation) -> MemoryQuery:
        query = self._query(queryable)
        return replace(query, predicates=(*query.predicates, operation.predicate))

    def apply_order(self, queryable: Any, operation: OrderOperation) -> MemoryQuery:
        return replace(self._query(queryable), order=operation.terms)

    def apply_page_bound(self, queryable: Any, operation: PageBoundOperation) -> MemoryQuery:
        query = self._query(queryable)
        if operation.cursor is not None:
            query = replace(query, predicates=(*query.predicates, operation.cursor))
        return replace(query, limit=operation.limit, offset=operation.offset)

    # -- evaluation ----------------------------------------------------------

    def matches(self, predicate: Predicate, record: Any) -> bool:
        if isinstance(predicate, Condition):
            value = get_path(record, predicate.field.record_path)
            return self.operators.evaluate(predicate.op, value, predicate.value)
        if isinstance(predicate, And):
            return all(self.matches(child, record) for child in predicate.children)
        if isinstance(predicate, Or):
            return any(self.matches(child, record) for child in predicate.children)
        if isinstance(predicate, Not):
            return not self.matches(predicate.child, record)
        if isinstance(predicate, Constant):
            return predicate.value
        raise TypeError(f"Unknown predicate node: {predicate!r}")

    def _filtered(self, query: MemoryQuery) -> list[Any]:
        return [
            record
            for record in query.records
            if all(self.matches(p, record) for p in query.predicates)
        ]

    def count(self, queryable: Any) -> int:
        return len(self._filtered(self._query(queryable)))

    def fetch(self, queryable: Any) -> list[Any]:
        query = self._query(queryable)
        records = self._filtered(query)
        for term in reversed(query.order):
            ascending = term.direction.is_ascending
            # Ascending sorts put low keys first, descending ones put them last.
            nulls_low = term.direction.nulls_first == ascending
            path = term.field.record_path
            records.sort(
                key=lambda r, p=path, n=nulls_low: _sort_key(get_path(r, p), n),
                reverse=not ascending,
            )
        start = query.offset or 0
        end = start + query.limit if query.limit is not None else None
        return records[start:end]
