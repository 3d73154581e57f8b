"""
SQLAlchemy 2 execution layer.

The queryable is a ``Select``. Filter and cursor predicates are compiled
into ``WHERE`` clauses through a :class:`SQLAlchemyOperatorRegistry`, order
terms into ``ORDER BY`` with explicit null placement, and page bounds into
``LIMIT``/``OFFSET``.

Join fields are resolved against ``bindings``: a mapping from binding name
to the entity (mapped class, ``aliased()`` entity or table) the caller has
already joined into the statement. Alias fields compile to a bare
``literal_column`` so they can reference a labelled projection.

Usage::

    adapter = SQLAlchemyAdapter(Pet, session=session, bindings={"owner": Owner})
    stmt = select(Pet).join(Pet.owner)
    records, meta = backend.run(stmt, params, adapter=adapter)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    ColumnElement,
    Select,
    and_,
    any_,
    false,
    func,
    literal,
    literal_column,
    not_,
    or_,
    select,
    true,
)

from ..exceptions import ConfigurationError
from ..fields import TypeKind
from ..predicates import And, Condition, Constant, Not, Or, PredicateOp
from ..utils import LIKE_ESCAPE
from .base import QueryAdapter

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.orm import Session

    from ..composer import (
        FilterOperation,
        OrderOperation,
        OrderTerm,
        PageBoundOperation,
    )
    from ..predicates import FieldRef, Predicate


# ---------------------------------------------------------------------------
# Operator strategies
# ---------------------------------------------------------------------------


class SQLAlchemyOperator(ABC):
    """
    Strategy interface for compiling a predicate operator
    into a SQLAlchemy ``ColumnElement[bool]``.
    """

    @property
    @abstractmethod
    def name(self) -> PredicateOp:
        """The operator this strategy handles."""
        ...

    @abstractmethod
    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        """
        Build a SQLAlchemy filter clause.

        Args:
            column: A SQLAlchemy column or instrumented attribute.
            value: The condition value.
            field: The field reference, for type-dependent operators.
        """
        ...


class SQLAlchemyOperatorRegistry:
    """Registry of :class:`SQLAlchemyOperator` instances keyed by :class:`PredicateOp`."""

    def __init__(self) -> None:
        self._operators: dict[PredicateOp, SQLAlchemyOperator] = {}

    def register(self, operator: SQLAlchemyOperator) -> None:
        self._operators[operator.name] = operator

    def register_all(self, *operators: SQLAlchemyOperator) -> None:
        for op in operators:
            self.register(op)

    def get(self, name: PredicateOp) -> SQLAlchemyOperator | None:
        return self._operators.get(name)

    def has(self, name: PredicateOp) -> bool:
        return name in self._operators

    def apply(
        self, name: PredicateOp, column: Any, value: Any, field: FieldRef
    ) -> ColumnElement[bool]:
        """
        Look up the operator and apply.

        Raises:
            ValueError: If the operator is not registered.
        """
        op = self.get(name)
        if op is None:
            raise ValueError(f"Unsupported operator for SQLAlchemy: {name}")
        return op.apply(column, value, field)


class _Binary(SQLAlchemyOperator):
    """Operators that map onto a single column method or Python operator."""

    op: PredicateOp

    @property
    def name(self) -> PredicateOp:
        return self.op


class EqualOperator(_Binary):
    op = PredicateOp.EQ

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column == value)


class NotEqualOperator(_Binary):
    op = PredicateOp.NE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column != value)


class LessThanOperator(_Binary):
    op = PredicateOp.LT

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column < value)


class LessEqualOperator(_Binary):
    op = PredicateOp.LE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column <= value)


class GreaterThanOperator(_Binary):
    op = PredicateOp.GT

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column > value)


class GreaterEqualOperator(_Binary):
    op = PredicateOp.GE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column >= value)


class InOperator(_Binary):
    op = PredicateOp.IN

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.in_(value))


class NotInOperator(_Binary):
    op = PredicateOp.NOT_IN

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.not_in(value))


class ContainsOperator(_Binary):
    """Array membership: ``value = ANY(column)``."""

    op = PredicateOp.CONTAINS

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", literal(value) == any_(column))


class NotContainsOperator(_Binary):
    op = PredicateOp.NOT_CONTAINS

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", not_(literal(value) == any_(column)))


class LikeOperator(_Binary):
    op = PredicateOp.LIKE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.like(value, escape=LIKE_ESCAPE))


class NotLikeOperator(_Binary):
    op = PredicateOp.NOT_LIKE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.not_like(value, escape=LIKE_ESCAPE))


class ILikeOperator(_Binary):
    op = PredicateOp.ILIKE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.ilike(value, escape=LIKE_ESCAPE))


class NotILikeOperator(_Binary):
    op = PredicateOp.NOT_ILIKE

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.not_ilike(value, escape=LIKE_ESCAPE))


class IsNullOperator(_Binary):
    op = PredicateOp.IS_NULL

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        return cast("ColumnElement[bool]", column.is_(None))


class IsEmptyOperator(_Binary):
    """Null, or an empty array (``cardinality``) / empty JSON object."""

    op = PredicateOp.IS_EMPTY

    def apply(self, column: Any, value: Any, field: FieldRef) -> ColumnElement[bool]:
        if field.kind is TypeKind.ARRAY:
            return or_(column.is_(None), func.cardinality(column) == 0)
        if field.kind is TypeKind.MAP:
            return or_(column.is_(None), column == literal({}, type_=column.type))
        return cast("ColumnElement[bool]", column.is_(None))


def build_default_sqla_registry() -> SQLAlchemyOperatorRegistry:
    """Create a registry with every built-in operator."""
    registry = SQLAlchemyOperatorRegistry()
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
# Adapter
# ---------------------------------------------------------------------------


class SQLAlchemyAdapter(QueryAdapter):
    """
    Apply operations to SQLAlchemy ``Select`` statements.

    Args:
        model: Entity that owns normal fields (mapped class, alias or table).
        session: Sync session used by ``count`` and ``fetch``. Only
            needed for execution; compiling works without one.
        bindings: Joined entities by binding name, for join fields.
        scalars: Return ORM objects (``True``) or row mappings (``False``).
        operators: Custom operator registry.
    """

    def __init__(
        self,
        model: Any,
        *,
        session: Session | None = None,
        bindings: Mapping[str, Any] | None = None,
        scalars: bool = True,
        operators: SQLAlchemyOperatorRegistry | None = None,
    ) -> None:
        self.model = model
        self.session = session
        self.bindings = dict(bindings or {})
        self.scalars = scalars
        self.operators = operators or build_default_sqla_registry()

    # -- column resolution ---------------------------------------------------

    @staticmethod
    def _attribute(entity: Any, name: str) -> Any:
        columns = getattr(entity, "c", None)
        if columns is not None:
            return columns[name]
        return getattr(entity, name)

    def column(self, ref: FieldRef) -> Any:
        if ref.alias:
            return literal_column(ref.source)
        if ref.binding is None:
            return self._attribute(self.model, ref.source)
        entity = self.bindings.get(ref.binding)
        if entity is None:
            raise ConfigurationError(
                f"Field {ref.name!r} needs binding {ref.binding!r}, which the "
                f"adapter does not know. Known bindings: {sorted(self.bindings)}"
            )
        return self._attribute(entity, ref.source)

    # -- compilation ---------------------------------------------------------

    def compile(self, predicate: Predicate) -> ColumnElement[bool]:
        """Compile a predicate tree into a SQLAlchemy boolean expression."""
        if isinstance(predicate, Condition):
            return self.operators.apply(
                predicate.op, self.column(predicate.field), predicate.value, predicate.field
            )
        if isinstance(predicate, And):
            return and_(*(self.compile(child) for child in predicate.children))
        if isinstance(predicate, Or):
            return or_(*(self.compile(child) for child in predicate.children))
        if isinstance(predicate, Not):
            return not_(self.compile(predicate.child))
        if isinstance(predicate, Constant):
            return true() if predicate.value else false()
        raise TypeError(f"Unknown predicate node: {predicate!r}")

    def order_clause(self, term: OrderTerm) -> Any:
        column = self.column(term.field)
        direction = term.direction
        clause = column.asc() if direction.is_ascending else column.desc()
        # Null placement is always explicit; plain asc/desc follow PostgreSQL.
        return clause.nulls_first() if direction.nulls_first else clause.nulls_last()

    # -- operations ----------------------------------------------------------

    def _check_bindings(self, bindings: frozenset[str]) -> None:
        missing = bindings - self.bindings.keys()
        if missing:
            raise ConfigurationError(
                f"Query needs bindings {sorted(missing)}, which the adapter does not know"
            )

    def apply_filter(self, queryable: Select[Any], operation: FilterOperation) -> Select[Any]:
        self._check_bindings(operation.bindings)
        return queryable.where(self.compile(operation.predicate))

    def apply_order(self, queryable: Select[Any], operation: OrderOperation) -> Select[Any]:
        self._check_bindings(operation.bindings)
        return queryable.order_by(*(self.order_clause(t) for t in operation.terms))

    def apply_page_bound(
        self, queryable: Select[Any], operation: PageBoundOperation
    ) -> Select[Any]:
        stmt = queryable
        if operation.cursor is not None:
            stmt = stmt.where(self.compile(operation.cursor))
        if operation.limit is not None:
            stmt = stmt.limit(operation.limit)
        if operation.offset is not None:
            stmt = stmt.offset(operation.offset)
        return stmt

    # -- execution -----------------------------------------------------------

    def count_statement(self, queryable: Select[Any]) -> Select[Any]:
        """``SELECT count(*)`` over the statement with ordering and paging removed."""
        inner = queryable.order_by(None).limit(None).offset(None)
        return select(func.count()).select_from(inner.subquery())

    def _session(self, operation: str) -> Session:
        if self.session is None:
            raise ConfigurationError(f"SQLAlchemyAdapter.{operation} needs a session")
        return self.session

    def count(self, queryable: Select[Any]) -> int:
        return int(self._session("count").scalar(self.count_statement(queryable)) or 0)

    def fetch(self, queryable: Select[Any]) -> list[Any]:
        result = self._session("fetch").execute(queryable)
        if self.scalars:
            return list(result.scalars())
        return [row._mapping for row in result]
