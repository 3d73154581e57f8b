"""
Turn validated parameters into abstract query operations.

Three independent steps, each a no-op on empty input:

- **filter**: one :class:`FilterOperation` holding the AND of every clause.
- **order**: one :class:`OrderOperation`; directions are reversed for
  backward cursor paging so the scan runs toward the boundary.
- **page bound**: one :class:`PageBoundOperation` with limit/offset, or a
  limit of ``first + 1``/``last + 1`` plus a seek predicate for cursors.

The operations are handed to a
:class:`~cqrs_ddd_query_params.adapters.base.QueryAdapter`, which applies
them to its own queryable type.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from .catalog import COMPOUND_OPERATORS, MULTI_TERM
from .cursor import decode_cursor
from .fields import AliasField, CompoundField, CustomField, JoinField, NormalField
from .operators import FilterOperator, OrderDirection, PaginationType
from .predicates import (
    TRUE,
    Condition,
    FieldRef,
    Predicate,
    PredicateOp,
    and_,
    not_,
    or_,
)
from .registry import FieldRegistry
from .utils import (
    add_wildcard,
    add_wildcard_prefix,
    add_wildcard_suffix,
    split_search_text,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .fields import FieldDescriptor
    from .params import Filter, Parameters

logger = logging.getLogger(__name__)

Op = FilterOperator


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FilterOperation:
    """Restrict the queryable to rows matching ``predicate``."""

    predicate: Predicate
    bindings: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class OrderTerm:
    direction: OrderDirection
    field: FieldRef


@dataclass(frozen=True, slots=True)
class OrderOperation:
    """Order the queryable by ``terms``, most significant first."""

    terms: tuple[OrderTerm, ...]
    bindings: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class PageBoundOperation:
    """
    Bound the result window.

    ``cursor`` is a seek predicate for cursor paging; ``limit`` then
    includes the extra probe row.
    """

    limit: int | None = None
    offset: int | None = None
    cursor: Predicate | None = None


Operation = Union[FilterOperation, OrderOperation, PageBoundOperation]

# Text operators lowered to a single LIKE-family condition.
_PATTERN_OPS: dict[FilterOperator, tuple[PredicateOp, Any]] = {
    Op.SEARCH: (PredicateOp.ILIKE, add_wildcard),
    Op.LIKE: (PredicateOp.LIKE, add_wildcard),
    Op.NOT_LIKE: (PredicateOp.NOT_LIKE, add_wildcard),
    Op.ILIKE: (PredicateOp.ILIKE, add_wildcard),
    Op.NOT_ILIKE: (PredicateOp.NOT_ILIKE, add_wildcard),
    Op.STARTS_WITH: (PredicateOp.ILIKE, add_wildcard_suffix),
    Op.ENDS_WITH: (PredicateOp.ILIKE, add_wildcard_prefix),
}

_DIRECT_OPS: dict[FilterOperator, PredicateOp] = {
    Op.EQ: PredicateOp.EQ,
    Op.NE: PredicateOp.NE,
    Op.LT: PredicateOp.LT,
    Op.LE: PredicateOp.LE,
    Op.GT: PredicateOp.GT,
    Op.GE: PredicateOp.GE,
    Op.IN: PredicateOp.IN,
    Op.CONTAINS: PredicateOp.CONTAINS,
    Op.NOT_CONTAINS: PredicateOp.NOT_CONTAINS,
}

_MULTI_TERM_OPS: dict[FilterOperator, tuple[PredicateOp, Any]] = {
    Op.LIKE_AND: (PredicateOp.LIKE, and_),
    Op.LIKE_OR: (PredicateOp.LIKE, or_),
    Op.ILIKE_AND: (PredicateOp.ILIKE, and_),
    Op.ILIKE_OR: (PredicateOp.ILIKE, or_),
}


def field_ref(descriptor: FieldDescriptor) -> FieldRef:
    """Locate the value of a normal, join or alias field."""
    if isinstance(descriptor, NormalField):
        return FieldRef(
            descriptor.name, descriptor.source, value_type=descriptor.value_type
        )
    if isinstance(descriptor, JoinField):
        return FieldRef(
            descriptor.name,
            descriptor.field,
            binding=descriptor.binding,
            path=descriptor.record_path,
            value_type=descriptor.value_type,
        )
    if isinstance(descriptor, AliasField):
        return FieldRef(descriptor.name, descriptor.name, alias=True)
    raise TypeError(f"{type(descriptor).__name__} {descriptor.name!r} has no single source")


def build_op(ref: FieldRef, op: FilterOperator, value: Any) -> Predicate:
    """Build the predicate for ``ref op value`` on a single physical field."""
    if op in _DIRECT_OPS:
        return Condition(_DIRECT_OPS[op], ref, value)
    if op is Op.NOT_IN:
        values = list(value)
        if None not in values:
            return Condition(PredicateOp.NOT_IN, ref, values)
        rest = [v for v in values if v is not None]
        null_check = not_(Condition(PredicateOp.IS_NULL, ref))
        if not rest:
            return null_check
        return and_(Condition(PredicateOp.NOT_IN, ref, rest), null_check)
    if op in (Op.EMPTY, Op.NOT_EMPTY):
        want_empty = bool(value) if op is Op.EMPTY else not value
        is_empty = Condition(PredicateOp.IS_EMPTY, ref)
        return is_empty if want_empty else not_(is_empty)
    if op in _PATTERN_OPS:
        predicate_op, pattern = _PATTERN_OPS[op]
        return Condition(predicate_op, ref, pattern(value))
    if op in _MULTI_TERM_OPS:
        predicate_op, combine = _MULTI_TERM_OPS[op]
        terms = split_search_text(value)
        if not terms:
            return TRUE
        return combine(*(Condition(predicate_op, ref, add_wildcard(t)) for t in terms))
    raise ValueError(f"Unsupported filter operator: {op}")


class QueryComposer:
    """
    Compose abstract query operations from validated parameters.

    Usage::

        composer = QueryComposer(registry=pets)
        for operation in composer.compose(params):
            query = adapter.apply(query, operation)
    """

    def __init__(
        self,
        registry: FieldRegistry | None = None,
        *,
        extra_opts: Mapping[str, Any] | None = None,
    ) -> None:
        self.registry = registry or FieldRegistry.unrestricted()
        self.extra_opts = dict(extra_opts or {})

    def compose(self, params: Parameters) -> list[Operation]:
        operations: list[Operation | None] = [
            self.filter_operation(params),
            self.order_operation(params),
            self.page_bound_operation(params),
        ]
        return [operation for operation in operations if operation is not None]

    # -- filter step ---------------------------------------------------------

    def filter_operation(self, params: Parameters) -> FilterOperation | None:
        predicate = and_(*(self.build_filter(f) for f in params.filters))
        if predicate == TRUE:
            return None
        return FilterOperation(predicate, predicate.bindings())

    def build_filter(self, flt: Filter) -> Predicate:
        """Predicate for one clause; ``TRUE`` for clauses that are no-ops."""
        if flt.field is None:
            return TRUE
        if flt.value is None and flt.op not in (Op.EMPTY, Op.NOT_EMPTY):
            return TRUE
        descriptor = self.registry.resolve(flt.field)
        if isinstance(descriptor, CustomField):
            return self._build_custom(descriptor, flt)
        if isinstance(descriptor, CompoundField):
            return self._build_compound(descriptor, flt)
        value = True if flt.value is None else flt.value
        return build_op(field_ref(descriptor), flt.op, value)

    def _build_custom(self, descriptor: CustomField, flt: Filter) -> Predicate:
        options = {**self.extra_opts, **descriptor.extra}
        predicate = descriptor.handler(flt, options)
        return TRUE if predicate is None else predicate

    def _member_refs(self, descriptor: CompoundField) -> list[FieldRef]:
        return [field_ref(self.registry.resolve(m)) for m in descriptor.members]

    def _build_compound(self, descriptor: CompoundField, flt: Filter) -> Predicate:
        op = flt.op
        if op not in COMPOUND_OPERATORS:
            logger.warning(
                "Operator '%s' not supported for compound fields. Ignored.", op.value
            )
            return TRUE

        refs = self._member_refs(descriptor)
        if op in (Op.EMPTY, Op.NOT_EMPTY):
            value = True if flt.value is None else flt.value
            # "empty" must hold for every member, "not_empty" for any one of them.
            merge = and_ if op is Op.EMPTY else or_
            return merge(*(build_op(ref, op, value) for ref in refs))

        if op in MULTI_TERM:
            predicate_op, combine = _MULTI_TERM_OPS[op]
            single = Op.LIKE if predicate_op is PredicateOp.LIKE else Op.ILIKE
            terms = split_search_text(flt.value)
            if not terms:
                return TRUE
            return combine(
                *(or_(*(build_op(ref, single, term) for ref in refs)) for term in terms)
            )

        return or_(*(build_op(ref, op, flt.value) for ref in refs))

    # -- order step ----------------------------------------------------------

    def order_terms(
        self, pairs: Sequence[tuple[OrderDirection, str]]
    ) -> tuple[OrderTerm, ...]:
        """Resolve ``(direction, field)`` pairs; compound fields expand to members."""
        terms: list[OrderTerm] = []
        for direction, name in pairs:
            descriptor = self.registry.resolve(name)
            if isinstance(descriptor, CompoundField):
                terms.extend(OrderTerm(direction, ref) for ref in self._member_refs(descriptor))
            else:
                terms.append(OrderTerm(direction, field_ref(descriptor)))
        return tuple(terms)

    def order_operation(self, params: Parameters) -> OrderOperation | None:
        pairs = params.order_pairs()
        if not pairs:
            return None
        if params.is_backward:
            pairs = [(direction.reverse(), name) for direction, name in pairs]
        terms = self.order_terms(pairs)
        bindings = frozenset(t.field.binding for t in terms if t.field.binding)
        return OrderOperation(terms, bindings)

    # -- page-bound step -----------------------------------------------------

    def page_bound_operation(self, params: Parameters) -> PageBoundOperation | None:
        pagination_type = params.pagination_type

        if pagination_type is PaginationType.OFFSET:
            return PageBoundOperation(limit=params.limit, offset=params.offset)

        if pagination_type is PaginationType.PAGE:
            if params.page is None or params.page_size is None:
                return PageBoundOperation(limit=params.page_size)
            return PageBoundOperation(
                limit=params.page_size,
                offset=(params.page - 1) * params.page_size,
            )

        if pagination_type is PaginationType.FIRST:
            cursor = self._seek(params, params.after, reverse=False)
            limit = params.first + 1 if params.first is not None else None
            return PageBoundOperation(limit=limit, cursor=cursor)

        if pagination_type is PaginationType.LAST:
            cursor = self._seek(params, params.before, reverse=True)
            limit = params.last + 1 if params.last is not None else None
            return PageBoundOperation(limit=limit, cursor=cursor)

        return None

    def _seek(
        self, params: Parameters, token: str | None, *, reverse: bool
    ) -> Predicate | None:
        if token is None:
            return None
        values = (
            params.decoded_cursor
            if params.decoded_cursor is not None
            else decode_cursor(token)
        )
        pairs = params.order_pairs()
        if reverse:
            pairs = [(direction.reverse(), name) for direction, name in pairs]
        return self.cursor_predicate(pairs, values)

    def cursor_predicate(
        self,
        pairs: Sequence[tuple[OrderDirection, str]],
        values: Mapping[str, Any],
    ) -> Predicate:
        """
        Seek predicate selecting rows strictly after the boundary tuple.

        For pairs ``(d1, f1), (d2, f2), ...`` this is
        ``f1 >= v1 AND (f1 > v1 OR (f2 > v2 ...))`` with the comparisons
        flipped for descending directions. Fields whose boundary value is
        ``None`` are skipped.
        """
        if not pairs:
            return TRUE
        (direction, name), rest = pairs[0], pairs[1:]
        value = values.get(name)
        descriptor = self.registry.resolve(name)
        if value is None or isinstance(descriptor, (CompoundField, CustomField)):
            if value is not None:
                logger.warning(
                    "Cursor boundary on %s field '%s' not supported. Ignored.",
                    type(descriptor).__name__,
                    name,
                )
            return self.cursor_predicate(rest, values)

        ref = field_ref(descriptor)
        strict = PredicateOp.GT if direction.is_ascending else PredicateOp.LT
        if not rest:
            return Condition(strict, ref, value)
        inclusive = PredicateOp.GE if direction.is_ascending else PredicateOp.LE
        return and_(
            Condition(inclusive, ref, value),
            or_(Condition(strict, ref, value), self.cursor_predicate(rest, values)),
        )
