"""Shared fixtures for query-params tests."""

from __future__ import annotations

from typing import Any

import pytest

from cqrs_ddd_query_params.backend import QueryBackend
from cqrs_ddd_query_params.config import QueryParamsSettings
from cqrs_ddd_query_params.fields import TypeKind, ValueType
from cqrs_ddd_query_params.params import Filter
from cqrs_ddd_query_params.predicates import Condition, FieldRef, Predicate, PredicateOp
from cqrs_ddd_query_params.registry import FieldRegistry


def reversed_name_filter(flt: Filter, options: dict[str, Any]) -> Predicate | None:
    """Custom filter: match pets whose name spelled backwards equals the value."""
    if options.get("disabled"):
        return None
    return Condition(PredicateOp.EQ, FieldRef("name", "name"), str(flt.value)[::-1])


def build_pets_registry(**options: Any) -> FieldRegistry:
    builder = (
        FieldRegistry.builder("Pet")
        .field("id", "integer", sortable=True)
        .field("name", "string", filterable=True, sortable=True)
        .field("age", "integer", filterable=True, sortable=True)
        .field("species", "string", filterable=True, sortable=True)
        .field("family_name", "string", filterable=True, sortable=True)
        .field("given_name", "string", filterable=True, sortable=True)
        .field("tags", ValueType.array(TypeKind.STRING), filterable=True)
        .field("vaccinated", "boolean", filterable=True)
        .compound("full_name", ["family_name", "given_name"], filterable=True, sortable=True)
        .join(
            "owner_name",
            binding="owner",
            field="name",
            value_type="string",
            filterable=True,
            sortable=True,
        )
        .custom("reversed_name", reversed_name_filter, extra={"source": "registry"})
        .alias("pet_count")
        .default_limit(options.pop("default_limit", 20))
        .max_limit(options.pop("max_limit", 100))
    )
    if "default_order" in options:
        builder = builder.default_order(*options.pop("default_order"))
    if "pagination_types" in options:
        builder = builder.pagination_types(*options.pop("pagination_types"))
    return builder.build()


@pytest.fixture
def make_pets():
    """Factory for Pet registries with overridden options."""
    return build_pets_registry


@pytest.fixture
def pets() -> FieldRegistry:
    """Pet field registry with every kind of field declared."""
    return build_pets_registry()


@pytest.fixture
def pet_records() -> list[dict[str, Any]]:
    return [
        {
            "id": 1,
            "name": "Patty",
            "age": 3,
            "species": "cat",
            "family_name": "Smith",
            "given_name": "Patty",
            "tags": ["fluffy"],
            "vaccinated": True,
            "owner": {"name": "Alice"},
        },
        {
            "id": 2,
            "name": "Harry",
            "age": 5,
            "species": "dog",
            "family_name": "Jones",
            "given_name": "Harry",
            "tags": [],
            "vaccinated": False,
            "owner": {"name": "Bob"},
        },
        {
            "id": 3,
            "name": "Maggie",
            "age": 1,
            "species": "fish",
            "family_name": "Smith",
            "given_name": "Maggie",
            "tags": None,
            "vaccinated": True,
            "owner": {"name": "Carol"},
        },
        {
            "id": 4,
            "name": "Rex",
            "age": 7,
            "species": "dog",
            "family_name": "Brown",
            "given_name": "Rex",
            "tags": ["loud", "fluffy"],
            "vaccinated": True,
            "owner": {"name": "Alice"},
        },
        {
            "id": 5,
            "name": "Kitty",
            "age": 2,
            "species": "cat",
            "family_name": None,
            "given_name": "Kitty",
            "tags": ["shy"],
            "vaccinated": False,
            "owner": None,
        },
    ]


@pytest.fixture
def backend() -> QueryBackend:
    """Adapter-less backend isolated from QUERY_PARAMS_* environment variables."""
    return QueryBackend(settings=QueryParamsSettings.model_construct())
