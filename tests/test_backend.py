"""End-to-end tests for QueryBackend and the module-level API."""

from __future__ import annotations

import logging

import pytest

import cqrs_ddd_query_params as query_params
from cqrs_ddd_query_params import backend as backend_module
from cqrs_ddd_query_params.adapters.memory import MemoryAdapter, MemoryQuery
from cqrs_ddd_query_params.backend import QueryBackend
from cqrs_ddd_query_params.config import QueryParamsSettings
from cqrs_ddd_query_params.exceptions import InvalidParamsError, NoAdapterError
from cqrs_ddd_query_params.params import Parameters
from cqrs_ddd_query_params.violations import ValidationResult, ViolationKind


def _names(records):
    return [r["name"] for r in records]


def _where(field, op, value):
    return {"filters": [{"field": field, "op": op, "value": value}]}


ORDERINGS = [
    (["name"], ["asc"]),
    (["name"], ["desc"]),
    (["age"], ["desc_nulls_last"]),
    (["species", "name"], ["asc", "asc"]),
    (["species", "name"], ["desc", "asc"]),
    (["species", "age"], ["asc_nulls_first", "desc"]),
]


# ══════════════════════════════════════════════════════════════════════
# Offset and page pagination
# ══════════════════════════════════════════════════════════════════════


class TestRun:
    def test_offset_page(self, backend, pets, pet_records) -> None:
        records, meta = backend.run(
            pet_records, {"order_by": ["name"], "limit": 2, "offset": 2}, registry=pets
        )
        assert _names(records) == ["Maggie", "Patty"]
        assert meta.total_count == 5
        assert meta.total_pages == 3
        assert meta.current_page == 2
        assert meta.next_offset == 4
        assert meta.previous_offset == 0

    def test_page_params(self, backend, pets, pet_records) -> None:
        records, meta = backend.run(
            pet_records, {"order_by": ["age"], "page": "2", "page_size": "2"}, registry=pets
        )
        assert _names(records) == ["Patty", "Harry"]
        assert meta.current_page == 2
        assert meta.next_page == 3
        assert meta.params == Parameters(order_by=("age",), page=2, page_size=2)

    def test_default_limit_applies(self, backend, make_pets, pet_records) -> None:
        records, meta = backend.run(pet_records, {}, registry=make_pets(default_limit=3))
        assert len(records) == 3
        assert meta.page_size == 3
        assert meta.has_next_page is True

    def test_backend_defaults(self, pet_records) -> None:
        backend = QueryBackend(settings=QueryParamsSettings.model_construct(), default_limit=4)
        records, _ = backend.run(pet_records, {})
        assert len(records) == 4

    def test_filters_and_descending_order(self, backend, pets, pet_records) -> None:
        params = {
            **_where("species", "==", "dog"),
            "order_by": ["age"],
            "order_directions": ["desc"],
        }
        records, meta = backend.run(pet_records, params, registry=pets)
        assert _names(records) == ["Rex", "Harry"]
        assert meta.total_count == 2

    def test_join_field(self, backend, pets, pet_records) -> None:
        records, _ = backend.run(pet_records, _where("owner_name", "==", "Alice"), registry=pets)
        assert _names(records) == ["Patty", "Rex"]

    def test_compound_field(self, backend, pets, pet_records) -> None:
        records, _ = backend.run(pet_records, _where("full_name", "=~", "smi"), registry=pets)
        assert _names(records) == ["Patty", "Maggie"]

    def test_unsupported_compound_operator_matches_everything(
        self, backend, pets, pet_records, caplog
    ) -> None:
        params = {**_where("full_name", "==", "Smith"), "order_by": ["id"]}
        with caplog.at_level(logging.WARNING, logger="cqrs_ddd_query_params.composer"):
            records, meta = backend.run(pet_records, params, registry=pets)
        assert _names(records) == ["Patty", "Harry", "Maggie", "Rex", "Kitty"]
        assert meta.total_count == 5
        assert "not supported for compound fields" in caplog.text

    def test_custom_field(self, backend, pets, pet_records) -> None:
        records, _ = backend.run(
            pet_records, _where("reversed_name", "==", "yttaP"), registry=pets
        )
        assert _names(records) == ["Patty"]

    def test_custom_field_sees_extra_opts(self, backend, pets, pet_records) -> None:
        records, meta = backend.run(
            pet_records,
            _where("reversed_name", "==", "yttaP"),
            registry=pets,
            extra_opts={"disabled": True},
        )
        assert len(records) == 5
        assert meta.total_count == 5

    def test_validated_parameters_skip_validation(self, backend, pet_records) -> None:
        records, _ = backend.run(pet_records, Parameters(limit=1, offset=4))
        assert _names(records) == ["Kitty"]

    def test_invalid_raw_parameters_raise(self, backend, pets, pet_records) -> None:
        with pytest.raises(InvalidParamsError) as exc_info:
            backend.run(pet_records, {"limit": -1}, registry=pets)
        assert set(exc_info.value.errors) == {"limit"}


# ══════════════════════════════════════════════════════════════════════
# Cursor pagination
# ══════════════════════════════════════════════════════════════════════


class TestCursorPagination:
    def test_forward_then_backward(self, backend, pets, pet_records) -> None:
        records = pet_records[:3]
        order = {"order_by": ["species", "name"]}

        page, meta = backend.run(records, {**order, "first": 2}, registry=pets)
        assert _names(page) == ["Patty", "Harry"]
        assert meta.has_next_page is True
        assert meta.has_previous_page is False
        assert meta.total_count is None

        page, meta = backend.run(
            records, {**order, "first": 2, "after": meta.end_cursor}, registry=pets
        )
        assert _names(page) == ["Maggie"]
        assert meta.has_next_page is False
        assert meta.has_previous_page is True

        page, meta = backend.run(
            records, {**order, "last": 2, "before": meta.start_cursor}, registry=pets
        )
        assert _names(page) == ["Patty", "Harry"]
        assert meta.has_previous_page is False
        assert meta.has_next_page is True

    def test_walks_every_page(self, backend, pets, pet_records) -> None:
        params = {"order_by": ["name"], "first": 2}
        seen = []
        while True:
            page, meta = backend.run(pet_records, params, registry=pets)
            seen.extend(_names(page))
            if not meta.has_next_page:
                break
            params = {**params, "after": meta.end_cursor}
        assert seen == ["Harry", "Kitty", "Maggie", "Patty", "Rex"]

    @pytest.mark.parametrize(("order_by", "directions"), ORDERINGS)
    def test_last_matches_first_over_the_whole_collection(
        self, backend, pets, pet_records, order_by, directions
    ) -> None:
        order = {"order_by": order_by, "order_directions": directions}
        forward, _ = backend.run(pet_records, {**order, "first": 5}, registry=pets)
        backward, _ = backend.run(pet_records, {**order, "last": 5}, registry=pets)
        assert len(forward) == 5
        assert _names(backward) == _names(forward)

    @pytest.mark.parametrize(("order_by", "directions"), ORDERINGS)
    def test_single_record_chain_ends_with_an_empty_window(
        self, backend, pets, pet_records, order_by, directions
    ) -> None:
        params = {"order_by": order_by, "order_directions": directions, "first": 1}
        expected, _ = backend.run(pet_records, {**params, "first": 5}, registry=pets)

        seen = []
        request = params
        for _ in pet_records:
            page, meta = backend.run(pet_records, request, registry=pets)
            seen.extend(_names(page))
            request = {**params, "after": meta.end_cursor}
        assert seen == _names(expected)
        assert meta.has_next_page is False

        page, meta = backend.run(pet_records, request, registry=pets)
        assert list(page) == []
        assert meta.has_next_page is False
        assert meta.start_cursor is None
        assert meta.end_cursor is None

    def test_descending_cursor(self, backend, pets, pet_records) -> None:
        order = {"order_by": ["age"], "order_directions": ["desc"]}
        _, meta = backend.run(pet_records, {**order, "first": 2}, registry=pets)
        page, _ = backend.run(
            pet_records, {**order, "first": 2, "after": meta.end_cursor}, registry=pets
        )
        assert _names(page) == ["Patty", "Kitty"]

    def test_cursor_for_other_order_is_rejected(self, backend, pets, pet_records) -> None:
        _, meta = backend.run(pet_records, {"order_by": ["name"], "first": 1}, registry=pets)
        result = backend.validate_and_run(
            pet_records,
            {"order_by": ["age"], "first": 1, "after": meta.end_cursor},
            registry=pets,
        )
        assert isinstance(result, ValidationResult)
        assert result.kinds("after") == [ViolationKind.CURSOR_MISMATCH]


# ══════════════════════════════════════════════════════════════════════
# Individual steps
# ══════════════════════════════════════════════════════════════════════


class TestSteps:
    def test_order_by_only(self, backend, pet_records) -> None:
        query = backend.order_by(pet_records, {"order_by": ["age"], "limit": 1, "offset": 0})
        assert _names(MemoryAdapter().fetch(query)) == [
            "Maggie",
            "Kitty",
            "Patty",
            "Harry",
            "Rex",
        ]

    def test_paginate_only(self, backend, pet_records) -> None:
        query = backend.paginate(pet_records, {"limit": 2, "offset": 1})
        assert _names(MemoryAdapter().fetch(query)) == ["Harry", "Maggie"]

    def test_empty_steps_return_the_queryable(self, backend, pet_records) -> None:
        assert backend.filter(pet_records, {}) is pet_records
        assert backend.order_by(pet_records, {}) is pet_records

    def test_count_ignores_pagination(self, backend, pets, pet_records) -> None:
        params = {**_where("species", "==", "cat"), "limit": 1}
        assert backend.count(pet_records, params, registry=pets) == 2

    def test_meta_counts(self, backend, pets, pet_records) -> None:
        meta = backend.meta(pet_records, {"limit": 2}, registry=pets)
        assert meta.total_count == 5
        assert meta.total_pages == 3

    def test_meta_takes_fetched_cursor_window(self, backend, pets, pet_records) -> None:
        window = pet_records[:3]
        meta = backend.meta(window, {"order_by": ["name"], "first": 2}, registry=pets)
        assert meta.has_next_page is True
        assert meta.total_count is None

    def test_meta_fetches_cursor_window_for_queries(self, backend, pets, pet_records) -> None:
        query = MemoryQuery.of(pet_records)
        meta = backend.meta(query, {"order_by": ["name"], "first": 5}, registry=pets)
        assert meta.has_next_page is False

    def test_explicit_adapter(self, pets, pet_records) -> None:
        backend = QueryBackend(MemoryAdapter(), settings=QueryParamsSettings.model_construct())
        records, _ = backend.run(MemoryQuery.of(pet_records), {"limit": 1}, registry=pets)
        assert len(records) == 1

    def test_unknown_queryable_needs_an_adapter(self, backend) -> None:
        with pytest.raises(NoAdapterError, match="'query' needs one"):
            backend.query("SELECT * FROM pets", {})


# ══════════════════════════════════════════════════════════════════════
# Validate + run
# ══════════════════════════════════════════════════════════════════════


def test_validate_and_run_returns_failed_result(backend, pets, pet_records, caplog):
    caplog.set_level(logging.DEBUG, logger="cqrs_ddd_query_params.backend")
    result = backend.validate_and_run(pet_records, {"limit": "abc"}, registry=pets)
    assert isinstance(result, ValidationResult)
    assert not result.is_valid
    assert "Rejected query parameters" in caplog.text


def test_validate_and_run_returns_records(backend, pets, pet_records):
    records, meta = backend.validate_and_run(pet_records, {"limit": 2}, registry=pets)
    assert len(records) == 2
    assert meta.has_next_page is True


def test_validate_and_run_or_raise(backend, pets, pet_records):
    raw = {"page": 0, "page_size": 2}
    with pytest.raises(InvalidParamsError) as exc_info:
        backend.validate_and_run_or_raise(pet_records, raw, registry=pets)
    assert exc_info.value.params == raw
    assert "page" in exc_info.value.errors


def test_disallowed_pagination_type(backend, pets, pet_records):
    result = backend.validate_and_run(
        pet_records, {"order_by": ["name"], "first": 2}, registry=pets, pagination_types=["page"]
    )
    assert result.kinds("first") == [ViolationKind.PAGINATION_NOT_ALLOWED]


def test_replace_invalid_params(backend, pets, pet_records):
    records, meta = backend.run(
        pet_records, {"limit": 500}, registry=pets, replace_invalid_params=True
    )
    assert len(records) == 5
    assert meta.page_size == 20


# ══════════════════════════════════════════════════════════════════════
# Module-level API
# ══════════════════════════════════════════════════════════════════════


@pytest.fixture
def default_backend(monkeypatch):
    backend = QueryBackend(settings=QueryParamsSettings.model_construct())
    monkeypatch.setattr(backend_module, "_default_backend", backend)
    return backend


def test_module_functions_use_the_default_backend(default_backend, pets, pet_records):
    assert query_params.get_default_backend() is default_backend
    records, meta = query_params.run(pet_records, {"order_by": ["name"], "limit": 1}, registry=pets)
    assert _names(records) == ["Harry"]
    assert meta.total_count == 5
    assert query_params.count(pet_records, _where("age", ">", 4), registry=pets) == 2
    assert query_params.validate({"limit": 3}, registry=pets).params.limit == 3
    with pytest.raises(InvalidParamsError):
        query_params.validate_or_raise({"limit": 0}, registry=pets)


def test_default_backend_reads_the_environment(monkeypatch):
    monkeypatch.setattr(backend_module, "_default_backend", None)
    monkeypatch.setenv("QUERY_PARAMS_DEFAULT_LIMIT", "3")
    assert query_params.validate({}).params.limit == 3
