"""
List-query parameters: validation, filtering, ordering and pagination.

Validates untrusted query parameters against a per-model field registry,
composes them into backend-agnostic operations and runs them through an
execution adapter (in-memory or SQLAlchemy), returning records together
with pagination metadata.
"""

from __future__ import annotations

from .backend import (
    QueryBackend,
    count,
    filter,
    get_default_backend,
    meta,
    order_by,
    paginate,
    query,
    run,
    validate,
    validate_and_run,
    validate_and_run_or_raise,
    validate_or_raise,
)
from .composer import QueryComposer
from .config import OptionResolver, QueryOptions, QueryParamsSettings
from .cursor import decode_cursor, encode_cursor, get_cursor_from_item, get_cursors
from .exceptions import (
    ConfigurationError,
    InvalidCursorError,
    InvalidDefaultOrderError,
    InvalidDefaultPaginationTypeError,
    InvalidDirectionsError,
    InvalidFieldDeclarationError,
    InvalidParamsError,
    NoAdapterError,
    QueryParamsError,
    UnknownFieldError,
)
from .fields import TypeKind, ValueType
from .metadata import Meta
from .operators import FilterOperator, OrderDirection, PaginationType
from .params import DefaultOrder, Filter, Parameters, push_order
from .registry import FieldRegistry, FieldRegistryBuilder
from .relay import connection_from_result, edges_from_result, page_info_from_meta
from .validation import ParameterValidator
from .violations import ValidationResult, Violation, ViolationKind

__all__ = [
    "ConfigurationError",
    "DefaultOrder",
    "FieldRegistry",
    "FieldRegistryBuilder",
    "Filter",
    "FilterOperator",
    "InvalidCursorError",
    "InvalidDefaultOrderError",
    "InvalidDefaultPaginationTypeError",
    "InvalidDirectionsError",
    "InvalidFieldDeclarationError",
    "InvalidParamsError",
    "Meta",
    "NoAdapterError",
    "OptionResolver",
    "OrderDirection",
    "PaginationType",
    "ParameterValidator",
    "Parameters",
    "QueryBackend",
    "QueryComposer",
    "QueryOptions",
    "QueryParamsError",
    "QueryParamsSettings",
    "TypeKind",
    "UnknownFieldError",
    "ValidationResult",
    "ValueType",
    "Violation",
    "ViolationKind",
    "connection_from_result",
    "count",
    "decode_cursor",
    "edges_from_result",
    "encode_cursor",
    "filter",
    "get_cursor_from_item",
    "get_cursors",
    "get_default_backend",
    "meta",
    "order_by",
    "page_info_from_meta",
    "paginate",
    "push_order",
    "query",
    "run",
    "validate",
    "validate_and_run",
    "validate_and_run_or_raise",
    "validate_or_raise",
]
