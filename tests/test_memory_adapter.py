"""Tests for the in-memory execution adapter."""

from __future__ import annotations

import pytest

from cqrs_ddd_query_params.adapters.memory import (
    MemoryAdapter,
    MemoryOperator,
    MemoryOperatorRegistry,
    MemoryQuery,
    build_default_registry,
    like_to_regex,
)
from cqrs_ddd_query_params.composer import (
    FilterOperation,
    OrderOperation,
    OrderTerm,
    PageBoundOperation,
)
from cqrs_ddd_query_params.operators import OrderDirection
from cqrs_ddd_query_params.predicates import (
    TRUE,
    Condition,
    FieldRef,
    PredicateOp,
    and_,
    not_,
    or_,
)

NAME = FieldRef("name", "name")
AGE = FieldRef("age", "age")
TAGS = FieldRef("tags", "tags")
FAMILY = FieldRef("family_name", "family_name")
OWNER = FieldRef("owner_name", "name", binding="owner", path=("owner", "name"))


@pytest.fixture
def adapter() -> MemoryAdapter:
    return MemoryAdapter()


def _names(adapter, records, *operations):
    return [r["name"] for r in adapter.fetch(adapter.apply_all(records, operations))]


def _where(predicate):
    return FilterOperation(predicate, predicate.bindings())


def _order(*terms):
    return OrderOperation(tuple(OrderTerm(d, f) for d, f in terms))


# ══════════════════════════════════════════════════════════════════════
# Operators
# ══════════════════════════════════════════════════════════════════════


class TestOperators:
    @pytest.mark.parametrize(
        ("predicate", "expected"),
        [
            (Condition(PredicateOp.EQ, AGE, 5), ["Harry"]),
            (Condition(PredicateOp.NE, AGE, 5), ["Patty", "Maggie", "Rex", "Kitty"]),
            (Condition(PredicateOp.GT, AGE, 3), ["Harry", "Rex"]),
            (Condition(PredicateOp.LE, AGE, 2), ["Maggie", "Kitty"]),
            (Condition(PredicateOp.IN, AGE, [1, 7]), ["Maggie", "Rex"]),
            (Condition(PredicateOp.NOT_IN, AGE, [1, 7]), ["Patty", "Harry", "Kitty"]),
            (Condition(PredicateOp.CONTAINS, TAGS, "fluffy"), ["Patty", "Rex"]),
            (Condition(PredicateOp.NOT_CONTAINS, TAGS, "fluffy"), ["Harry", "Kitty"]),
            (Condition(PredicateOp.ILIKE, NAME, "%A%"), ["Patty", "Harry", "Maggie"]),
            (Condition(PredicateOp.LIKE, NAME, "%A%"), []),
            (Condition(PredicateOp.NOT_LIKE, NAME, "%a%"), ["Rex", "Kitty"]),
            (Condition(PredicateOp.IS_NULL, FAMILY), ["Kitty"]),
            (Condition(PredicateOp.IS_EMPTY, TAGS), ["Harry", "Maggie"]),
        ],
    )
    def test_condition(self, adapter, pet_records, predicate, expected) -> None:
        assert _names(adapter, pet_records, _where(predicate)) == expected

    def test_null_never_compares(self, adapter, pet_records) -> None:
        predicate = Condition(PredicateOp.LT, FAMILY, "Z")
        assert "Kitty" not in _names(adapter, pet_records, _where(predicate))

    def test_join_path(self, adapter, pet_records) -> None:
        predicate = Condition(PredicateOp.EQ, OWNER, "Alice")
        assert _names(adapter, pet_records, _where(predicate)) == ["Patty", "Rex"]

    def test_logic_nodes(self, adapter, pet_records) -> None:
        predicate = or_(
            and_(
                Condition(PredicateOp.EQ, FieldRef("species", "species"), "dog"),
                Condition(PredicateOp.GT, AGE, 5),
            ),
            not_(Condition(PredicateOp.IS_NULL, FAMILY)) & Condition(PredicateOp.EQ, AGE, 1),
        )
        assert _names(adapter, pet_records, _where(predicate)) == ["Maggie", "Rex"]

    def test_constant(self, adapter, pet_records) -> None:
        assert len(_names(adapter, pet_records, _where(TRUE))) == 5

    def test_objects_are_read_by_attribute(self, adapter) -> None:
        class Pet:
            def __init__(self, name: str) -> None:
                self.name = name

        query = adapter.apply(
            [Pet("Rex"), Pet("Harry")], _where(Condition(PredicateOp.EQ, NAME, "Rex"))
        )
        assert [p.name for p in adapter.fetch(query)] == ["Rex"]

    def test_custom_operator(self, pet_records) -> None:
        class AlwaysEqual(MemoryOperator):
            @property
            def name(self) -> PredicateOp:
                return PredicateOp.EQ

            def evaluate(self, field_value, condition_value) -> bool:
                return True

        registry = build_default_registry()
        registry.register(AlwaysEqual())
        adapter = MemoryAdapter(registry)
        predicate = Condition(PredicateOp.EQ, AGE, 100)
        assert len(_names(adapter, pet_records, _where(predicate))) == 5

    def test_unregistered_operator(self, pet_records) -> None:
        adapter = MemoryAdapter(MemoryOperatorRegistry())
        with pytest.raises(ValueError, match="Unsupported operator"):
            adapter.count(adapter.apply(pet_records, _where(Condition(PredicateOp.EQ, AGE, 1))))


@pytest.mark.parametrize(
    ("pattern", "value", "matches"),
    [
        ("%50\\%%", "save 50% now", True),
        ("%50\\%%", "save 500 now", False),
        ("a\\_b", "a_b", True),
        ("a\\_b", "axb", False),
        ("a_b", "axb", True),
        ("a.b", "axb", False),
        ("(%)", "(x)", True),
    ],
)
def test_like_to_regex(pattern, value, matches):
    assert (like_to_regex(pattern).fullmatch(value) is not None) is matches


# ══════════════════════════════════════════════════════════════════════
# Ordering and bounds
# ══════════════════════════════════════════════════════════════════════


class TestOrdering:
    def test_multi_key(self, adapter, pet_records) -> None:
        order = _order(
            (OrderDirection.ASC, FieldRef("species", "species")),
            (OrderDirection.DESC, AGE),
        )
        assert _names(adapter, pet_records, order) == [
            "Patty",
            "Kitty",
            "Rex",
            "Harry",
            "Maggie",
        ]

    @pytest.mark.parametrize(
        ("direction", "expected"),
        [
            (OrderDirection.ASC, ["Rex", "Harry", "Patty", "Maggie", "Kitty"]),
            (OrderDirection.DESC, ["Kitty", "Patty", "Maggie", "Harry", "Rex"]),
            (OrderDirection.ASC_NULLS_FIRST, ["Kitty", "Rex", "Harry", "Patty", "Maggie"]),
            (OrderDirection.DESC_NULLS_LAST, ["Patty", "Maggie", "Harry", "Rex", "Kitty"]),
        ],
    )
    def test_null_placement(self, adapter, pet_records, direction, expected) -> None:
        assert _names(adapter, pet_records, _order((direction, FAMILY))) == expected


class TestPageBound:
    def test_limit_offset(self, adapter, pet_records) -> None:
        operations = (
            _order((OrderDirection.ASC, NAME)),
            PageBoundOperation(limit=2, offset=1),
        )
        assert _names(adapter, pet_records, *operations) == ["Kitty", "Maggie"]

    def test_cursor_seek(self, adapter, pet_records) -> None:
        operations = (
            _order((OrderDirection.ASC, NAME)),
            PageBoundOperation(limit=3, cursor=Condition(PredicateOp.GT, NAME, "Kitty")),
        )
        assert _names(adapter, pet_records, *operations) == ["Maggie", "Patty", "Rex"]

    def test_count_ignores_bounds_and_order(self, adapter, pet_records) -> None:
        query = adapter.apply_all(
            pet_records,
            [
                _where(Condition(PredicateOp.GT, AGE, 1)),
                _order((OrderDirection.ASC, NAME)),
                PageBoundOperation(limit=1, offset=2),
            ],
        )
        assert adapter.count(query) == 4
        assert len(adapter.fetch(query)) == 1


def test_queries_are_immutable(adapter, pet_records):
    base = MemoryQuery.of(pet_records)
    filtered = adapter.apply(base, _where(Condition(PredicateOp.EQ, AGE, 5)))
    assert base.predicates == ()
    assert adapter.count(base) == 5
    assert adapter.count(filtered) == 1


def test_unknown_operation_is_rejected(adapter):
    with pytest.raises(TypeError, match="Unknown operation"):
        adapter.apply([], object())
